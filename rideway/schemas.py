from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IntervalBaseName(str, Enum):
    current = "current"
    zero = "zero"


class PriorityName(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class IntegrationTypeName(str, Enum):
    webhook = "webhook"
    homeassistant = "homeassistant"
    ntfy = "ntfy"


class EventTypeName(str, Enum):
    maintenance_due = "maintenance_due"
    maintenance_completed = "maintenance_completed"
    mileage_updated = "mileage_updated"
    motorcycle_added = "motorcycle_added"


class ErrorResponse(BaseModel):
    error: str


# Motorcycles


class MotorcycleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1885, le=2100)
    vin: Optional[str] = Field(default=None, max_length=17)
    color: Optional[str] = None
    purchaseDate: Optional[date] = None
    currentMileage: Optional[int] = Field(default=None, ge=0)
    isOwned: bool = True
    isDefault: bool = False
    notes: Optional[str] = None


class MotorcycleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    make: str
    model: str
    year: int
    vin: Optional[str]
    color: Optional[str]
    currentMileage: Optional[int] = Field(validation_alias="current_mileage")
    isOwned: bool = Field(validation_alias="is_owned")
    isDefault: bool = Field(validation_alias="is_default")


class MileageUpdate(BaseModel):
    newMileage: int = Field(ge=0)
    notes: Optional[str] = None


class MileageLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    motorcycleId: str = Field(validation_alias="motorcycle_id")
    previousMileage: Optional[int] = Field(validation_alias="previous_mileage")
    newMileage: int = Field(validation_alias="new_mileage")
    date: datetime
    notes: Optional[str]


class MileageUpdateResponse(BaseModel):
    motorcycleId: str
    previousMileage: Optional[int]
    newMileage: int
    changed: bool
    log: Optional[MileageLogResponse] = None
    tasksRebased: int = 0
    notificationsTriggered: int = 0
    message: Optional[str] = None


# Maintenance tasks


class TaskCreate(BaseModel):
    motorcycleId: str
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    intervalMiles: Optional[int] = Field(default=None, ge=0)
    intervalDays: Optional[int] = Field(default=None, ge=0)
    intervalBase: IntervalBaseName = IntervalBaseName.current
    baseOdometer: Optional[int] = Field(default=None, ge=0)
    baseDate: Optional[datetime] = None
    priority: PriorityName = PriorityName.medium
    isRecurring: bool = True


class TaskImport(BaseModel):
    motorcycleId: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    intervalMiles: Optional[int] = Field(default=None, ge=0)
    intervalDays: Optional[int] = Field(default=None, ge=0)
    intervalBase: IntervalBaseName = IntervalBaseName.current
    priority: PriorityName = PriorityName.medium
    isRecurring: bool = True

    def to_service(self) -> dict[str, Any]:
        return {
            "motorcycle_id": self.motorcycleId,
            "name": self.name,
            "description": self.description,
            "interval_miles": self.intervalMiles,
            "interval_days": self.intervalDays,
            "interval_base": self.intervalBase.value,
            "priority": self.priority.value,
            "is_recurring": self.isRecurring,
        }


class TaskUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    intervalMiles: Optional[int] = Field(default=None, ge=0)
    intervalDays: Optional[int] = Field(default=None, ge=0)
    intervalBase: Optional[IntervalBaseName] = None
    priority: Optional[PriorityName] = None
    isRecurring: Optional[bool] = None
    nextDueMileage: Optional[int] = Field(default=None, gt=0)

    def changes(self) -> dict[str, Any]:
        """Fields the client sent, keyed by task attribute; null clears intervals and description."""
        clearable = {"description", "intervalMiles", "intervalDays"}
        names = {
            "name": "name",
            "description": "description",
            "intervalMiles": "interval_miles",
            "intervalDays": "interval_days",
            "intervalBase": "interval_base",
            "priority": "priority",
            "isRecurring": "is_recurring",
        }
        sent = self.model_dump(exclude_unset=True, mode="json")
        return {
            attr: sent[field]
            for field, attr in names.items()
            if field in sent and (sent[field] is not None or field in clearable)
        }


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    motorcycleId: str = Field(validation_alias="motorcycle_id")
    name: str
    description: Optional[str]
    priority: str
    intervalMiles: Optional[int] = Field(validation_alias="interval_miles")
    intervalDays: Optional[int] = Field(validation_alias="interval_days")
    intervalBase: str = Field(validation_alias="interval_base")
    baseOdometer: Optional[int] = Field(validation_alias="base_odometer")
    baseDate: Optional[datetime] = Field(validation_alias="base_date")
    nextDueOdometer: Optional[int] = Field(validation_alias="next_due_odometer")
    nextDueDate: Optional[date] = Field(validation_alias="next_due_date")
    isRecurring: bool = Field(validation_alias="is_recurring")
    archived: bool


class BatchImportResponse(BaseModel):
    message: str
    tasks: list[TaskResponse]
    errors: Optional[list[str]] = None


class TaskCompletion(BaseModel):
    mileage: Optional[int] = Field(default=None, ge=0)
    serviceDate: Optional[datetime] = None
    resetSchedule: bool = True
    cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    receiptUrl: Optional[str] = Field(default=None, max_length=500)


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    motorcycleId: str = Field(validation_alias="motorcycle_id")
    taskId: Optional[str] = Field(validation_alias="task_id")
    date: datetime
    mileage: Optional[int]
    cost: Optional[Decimal]
    notes: Optional[str]
    receiptUrl: Optional[str] = Field(validation_alias="receipt_url")
    isScheduled: bool = Field(validation_alias="is_scheduled")
    resetsInterval: bool = Field(validation_alias="resets_interval")
    nextDueOdometer: Optional[int] = Field(validation_alias="next_due_odometer")
    nextDueDate: Optional[date] = Field(validation_alias="next_due_date")


class CompletionResponse(BaseModel):
    message: str
    record: RecordResponse
    nextDueOdometer: Optional[int]
    nextDueDate: Optional[date]
    notifications: Optional[dict[str, Any]] = None


class ServiceRecordCreate(BaseModel):
    motorcycleId: str
    date: datetime
    mileage: Optional[int] = Field(default=None, ge=0)
    taskId: Optional[str] = None
    cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    receiptUrl: Optional[str] = Field(default=None, max_length=500)


class ServiceRecordUpdate(BaseModel):
    date: Optional[datetime] = None
    mileage: Optional[int] = Field(default=None, ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    receiptUrl: Optional[str] = Field(default=None, max_length=500)


class DueCheckResponse(BaseModel):
    success: bool = True
    message: str
    notificationsSent: int = 0
    timeRemaining: Optional[int] = None


# Integrations


class IntegrationEventIn(BaseModel):
    eventType: EventTypeName
    enabled: bool = True
    templateData: Optional[dict[str, Any]] = None
    payloadTemplate: Optional[str] = None

    def to_service(self) -> dict[str, Any]:
        return {
            "event_type": self.eventType.value,
            "enabled": self.enabled,
            "template_data": self.templateData,
            "payload_template": self.payloadTemplate,
        }


class IntegrationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: IntegrationTypeName
    active: bool = True
    config: dict[str, Any]
    events: list[IntegrationEventIn] = Field(default_factory=list)


class IntegrationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    active: Optional[bool] = None
    config: Optional[dict[str, Any]] = None
    events: Optional[list[IntegrationEventIn]] = None


class EventLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    eventType: str = Field(validation_alias="event_type")
    status: str
    statusMessage: Optional[str] = Field(validation_alias="status_message")
    requestData: Optional[str] = Field(validation_alias="request_data")
    responseData: Optional[str] = Field(validation_alias="response_data")
    startedAt: Optional[datetime] = Field(validation_alias="started_at")
    createdAt: datetime = Field(validation_alias="created_at")


class TemplatePreviewRequest(BaseModel):
    eventType: str
    template: str

    @field_validator("template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("template must not be empty")
        return value

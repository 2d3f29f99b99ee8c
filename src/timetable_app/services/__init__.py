from .ai_gateway import AiGatewayError, ChatProvider, GeminiClient, ImportProvider, TimetableDocument, load_document
from .assistant import AssistantSession
from .attendance_service import PeriodRegister, mark_attendance
from .edit_gate import EditGate, EditLockedError
from .import_reconciler import ImportInProgressError, ImportSession, NoImportToFinalizeError, finalize
from .registry import EntityNotFoundError, RegistryValidationError
from .schedule_mirror import ScheduleValidationError, build_entry, write_slot
from .school_service import SchoolService, build_service

__all__ = [
	"AiGatewayError",
	"AssistantSession",
	"ChatProvider",
	"EditGate",
	"EditLockedError",
	"EntityNotFoundError",
	"GeminiClient",
	"ImportInProgressError",
	"ImportProvider",
	"ImportSession",
	"NoImportToFinalizeError",
	"PeriodRegister",
	"RegistryValidationError",
	"ScheduleValidationError",
	"SchoolService",
	"TimetableDocument",
	"build_entry",
	"build_service",
	"finalize",
	"load_document",
	"mark_attendance",
	"write_slot",
]

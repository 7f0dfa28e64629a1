from services.delegates import (GeminiDelegate, RecognitionDelegate, RecognitionRequest,
                                StudentProfile, SummaryDelegate)
from services.reconciler import AttendanceReconciler
from services.roster_service import RosterService
from services.summary import SummaryRequester

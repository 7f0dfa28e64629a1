from models.attendance_model import MarkResult, WriteFailure
from models.class_model import ClassRecord, generate_class_code
from models.memory_store import MemoryRosterStore
from models.roster_store import RosterStore, RosterSubscription
from models.session_model import AttendanceMarkSession
from models.student_model import StudentRecord, roll_number_key, sort_roster
from models.user_model import ROLES, UserProfile

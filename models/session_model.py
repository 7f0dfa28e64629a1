from dataclasses import dataclass, field
from typing import List, Optional, Set

from models.student_model import StudentRecord


@dataclass
class AttendanceMarkSession:
    """
    One marking action. Lives only as long as the request that created it;
    the present/absent split is a snapshot of the roster passed in and is
    not refreshed if the roster changes while writes are in flight.
    """
    class_id: str
    target_date: str
    captured_photo: Optional[str] = None
    recognized_roll_numbers: Set[str] = field(default_factory=set)
    present_students: List[StudentRecord] = field(default_factory=list)
    absent_students: List[StudentRecord] = field(default_factory=list)

    def partition(self, roster, present_roll_numbers):
        self.recognized_roll_numbers = set(present_roll_numbers)
        self.present_students = [s for s in roster if s.roll_number in self.recognized_roll_numbers]
        self.absent_students = [s for s in roster if s.roll_number not in self.recognized_roll_numbers]

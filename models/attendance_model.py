from dataclasses import dataclass, field
from typing import Dict, List

from models.student_model import StudentRecord


@dataclass
class WriteFailure:
    student_id: str
    roll_number: str
    reason: str

    def to_json(self):
        return {"student_id": self.student_id, "roll_number": self.roll_number, "reason": self.reason}


@dataclass
class MarkResult:
    date: str
    present: List[StudentRecord] = field(default_factory=list)
    absent: List[StudentRecord] = field(default_factory=list)
    marked_count: int = 0
    failures: List[WriteFailure] = field(default_factory=list)
    total_faces_detected: int = 0
    boxes: Dict[str, dict] = field(default_factory=dict)  # roll number -> {x, y, width, height}

    @property
    def success(self):
        return not self.failures

    def to_json(self):
        return {
            "success": self.success,
            "date": self.date,
            "present": [s.to_json() for s in self.present],
            "absent": [s.to_json() for s in self.absent],
            "marked_count": self.marked_count,
            "failures": [f.to_json() for f in self.failures],
            "total_faces_detected": self.total_faces_detected,
            "boxes": self.boxes,
        }

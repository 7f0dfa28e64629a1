import re
from dataclasses import dataclass, field
from typing import List, Optional

_CHUNK_RE = re.compile(r"(\d+)")


def roll_number_key(roll_number: str):
    """Numeric-aware sort key: "2" < "10", "A9" < "A10"."""
    key = []
    for chunk in _CHUNK_RE.split(roll_number or ""):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk), ""))
        else:
            key.append((1, 0, chunk.lower()))
    return key


@dataclass
class StudentRecord:
    id: str
    name: str
    roll_number: str
    attendance_history: List[str] = field(default_factory=list)  # 'YYYY-MM-DD'
    profile_photo_url: Optional[str] = None
    uid: Optional[str] = None

    @classmethod
    def from_dict(cls, doc_id, data):
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            roll_number=str(data.get("rollNumber", "")),
            attendance_history=list(data.get("attendanceHistory") or []),
            profile_photo_url=data.get("profilePhotoUrl") or None,
            uid=data.get("uid"),
        )

    def to_dict(self):
        data = {
            "name": self.name,
            "rollNumber": self.roll_number,
            "attendanceHistory": list(self.attendance_history),
        }
        if self.profile_photo_url:
            data["profilePhotoUrl"] = self.profile_photo_url
        if self.uid:
            data["uid"] = self.uid
        return data

    @property
    def has_photo(self):
        return bool(self.profile_photo_url)

    def has_attended(self, date_str):
        return date_str in self.attendance_history

    def to_json(self):
        """API shape; the photo itself is left out, it can be large."""
        return {
            "id": self.id,
            "name": self.name,
            "rollNumber": self.roll_number,
            "attendanceHistory": sorted(self.attendance_history),
            "totalAttendance": len(self.attendance_history),
            "hasPhoto": self.has_photo,
        }


def sort_roster(students):
    return sorted(students, key=lambda s: roll_number_key(s.roll_number))

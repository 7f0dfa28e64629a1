import secrets
from dataclasses import dataclass

CLASS_CODE_CHARS = "ABCDEFGHIJKLMNPQRSTUVWXYZ123456789"
CLASS_CODE_LENGTH = 6


def generate_class_code(length=CLASS_CODE_LENGTH):
    """Random join code; no O/0 so it can be read aloud."""
    return "".join(secrets.choice(CLASS_CODE_CHARS) for _ in range(length))


@dataclass
class ClassRecord:
    id: str
    class_name: str
    class_code: str
    faculty_id: str

    @classmethod
    def from_dict(cls, doc_id, data):
        return cls(
            id=doc_id,
            class_name=data.get("className", ""),
            class_code=data.get("classCode", ""),
            faculty_id=data.get("facultyId", ""),
        )

    def to_dict(self):
        return {
            "className": self.class_name,
            "classCode": self.class_code,
            "facultyId": self.faculty_id,
        }

    def to_json(self):
        return {"id": self.id, **self.to_dict()}

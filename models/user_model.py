from dataclasses import dataclass

ROLES = ("faculty", "student")


@dataclass
class UserProfile:
    uid: str
    email: str
    name: str
    role: str  # "faculty" or "student"

    @classmethod
    def from_dict(cls, uid, data):
        return cls(
            uid=uid,
            email=data.get("email", ""),
            name=data.get("name", ""),
            role=data.get("role", "student"),
        )

    def to_dict(self):
        return {"email": self.email, "name": self.name, "role": self.role}

    def to_session(self):
        return {"uid": self.uid, "email": self.email, "name": self.name, "role": self.role}

from pydantic import BaseModel


class PairedStudent(BaseModel):
    id: str
    first_name: str
    last_name: str
    username: str
    chat_enabled: bool = True


class AddStudentRequest(BaseModel):
    student_id: str


class ChatToggleRequest(BaseModel):
    chat_enabled: bool

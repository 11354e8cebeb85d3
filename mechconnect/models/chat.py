from pydantic import BaseModel, Field, validator
from datetime import datetime
from typing import List, Optional

class Chat(BaseModel):
    id: str
    booking_id: str
    customer_id: str
    mechanic_id: str
    participants: List[str]
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime

class MessageCreate(BaseModel):
    text: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = None

    @validator("image_url", always=True)
    def text_or_image(cls, v, values):
        if not v and not (values.get("text") or "").strip():
            raise ValueError("A message needs text or an image")
        return v

class Message(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    sender_name: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    read: bool = False
    created_at: datetime

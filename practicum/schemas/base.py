from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

class CamelModel(BaseModel):
    """백엔드 JSON(camelCase)과 파이썬 필드(snake_case) 매핑"""

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel

class TimeStampedBase(CamelModel):
    """시간 정보를 포함하는 기본 스키마"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# app/schemas/base.py
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Dashboards speak camelCase; Python code keeps snake_case."""

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel

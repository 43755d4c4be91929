from typing import Literal

from pydantic import BaseModel

StepStatus = Literal["pending", "generating", "completed", "error"]


class GenerationStep(BaseModel):
    step: int
    title: str
    status: StepStatus = "pending"

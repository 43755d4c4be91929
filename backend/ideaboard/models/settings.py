from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel

from ideaboard.config import settings


class ModelConfig(BaseModel):
    """How to reach a language model.

    ``model_type`` selects between the local inference descriptor
    (``ollama_url`` + ``model_name``) and the hosted one
    (``selected_provider`` + ``selected_model`` + ``custom_endpoint`` +
    ``api_key``). Both halves are kept so switching back and forth does not
    lose the other side's values.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    model_type: Literal["ollama", "online"] = "ollama"
    ollama_url: str = PydanticField(default_factory=lambda: settings.ollama_url)
    model_name: str = PydanticField(default_factory=lambda: settings.ollama_model)
    selected_provider: str = ""
    selected_model: str = ""
    custom_endpoint: str = ""
    api_key: str = ""

    @property
    def is_hosted(self) -> bool:
        return self.model_type == "online"


class ModelSettingsRecord(SQLModel, table=True):
    __tablename__ = "model_settings"

    id: int | None = Field(default=None, primary_key=True)
    data: str = Field(default="{}")  # JSON, api key encrypted

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

GenerationResult = dict[str, Any]


class ImagePayload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data: str = Field(min_length=1)
    mime_type: str = Field(alias="mimeType", min_length=1)


class TryOnRequest(BaseModel):
    user_image: ImagePayload | None = Field(default=None, alias="userImage")
    product_image_url: str | None = Field(default=None, alias="productImageUrl")


class AdminConfigRequest(BaseModel):
    api_key: str | None = Field(default=None, alias="apiKey")
    model: str | None = None
    provider: str | None = None
    hf_token: str | None = Field(default=None, alias="hfToken")


class ValidationResult(BaseModel):
    valid: bool
    models: list[str] = Field(default_factory=list)
    error: str | None = None


def build_generation_result(image_b64: str, mime_type: str = "image/png") -> GenerationResult:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": image_b64,
                            }
                        }
                    ]
                },
                "finishReason": "STOP",
            }
        ]
    }

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional


class RegisterRequest(BaseModel):
    email: str = ""
    full_name: str = Field(default="", validation_alias=AliasChoices("fullName", "full_name"))
    password: str = ""
    confirm_password: str = Field(
        default="", validation_alias=AliasChoices("confirmPassword", "confirm_password")
    )

    model_config = ConfigDict(extra="ignore")


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""

    model_config = ConfigDict(extra="ignore")


class ForgotPasswordRequest(BaseModel):
    email: str = ""

    model_config = ConfigDict(extra="ignore")


class ResetPasswordRequest(BaseModel):
    token: str = ""
    password: str = ""
    confirm_password: str = Field(
        default="", validation_alias=AliasChoices("confirmPassword", "confirm_password")
    )

    model_config = ConfigDict(extra="ignore")


class CreateChatRequest(BaseModel):
    initial_message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("initialMessage", "initial_message")
    )

    model_config = ConfigDict(extra="ignore")


class RenameChatRequest(BaseModel):
    name: str = ""

    model_config = ConfigDict(extra="ignore")


class SendMessageRequest(BaseModel):
    message: str = ""

    model_config = ConfigDict(extra="ignore")


class EditMessageRequest(BaseModel):
    content: str = ""
    regenerate: bool = True

    model_config = ConfigDict(extra="ignore")


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("displayName", "display_name")
    )
    email: Optional[str] = None
    theme: Optional[str] = None
    current_password: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("currentPassword", "current_password")
    )
    new_password: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("newPassword", "new_password")
    )
    email_change_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("emailChangePassword", "email_change_password"),
    )

    model_config = ConfigDict(extra="ignore")


class DeleteAccountRequest(BaseModel):
    confirmation_text: str = Field(
        default="", validation_alias=AliasChoices("confirmationText", "confirmation_text")
    )

    model_config = ConfigDict(extra="ignore")

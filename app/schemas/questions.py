"""Pydantic schemas for question listing and bulk creation."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuestionDraft(BaseModel):
    """A new multiple-choice question.

    The correct answer must be one of the options.
    """

    question: str = Field(..., min_length=1, description="Question text.")
    options: list[str] = Field(..., min_length=1, description="Ordered answer options.")
    answer: str = Field(..., description="The correct option, verbatim.")

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "QuestionDraft":
        if self.answer not in self.options:
            raise ValueError("answer must be one of the options")
        return self


class BulkCreateRequest(BaseModel):
    """Questions to add to one topic (question set)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Topic / set name, e.g. 'SPID'.")
    parent_set: str | None = Field(
        None,
        alias="parentSet",
        description="Optional parent set the topic belongs to.",
    )
    questions: list[QuestionDraft] = Field(
        ...,
        description="Questions to insert. Must not be empty.",
    )


class BulkCreateResponse(BaseModel):
    message: str
    count: int
    topic: str


class QuestionOut(BaseModel):
    """Question projection served to clients.

    ``topic`` is left out of filtered listings, where every question shares
    the requested topic.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    question: str
    options: list[str]
    answer: str
    topic: str | None = None
    parent_set: str | None = Field(None, alias="parentSet")
    explanation: str | None = None
    explanation_sources: list[str] = Field(default_factory=list, alias="explanationSources")


class QuestionSetResponse(BaseModel):
    """A named list of questions ("all" when unfiltered)."""

    model_config = ConfigDict(populate_by_name=True)

    set_name: str = Field(..., alias="set")
    questions: list[QuestionOut]

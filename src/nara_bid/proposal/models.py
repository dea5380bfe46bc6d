"""
提案書ウィザードのデータモデル

各ステップの状態は `step` をタグとする判別共用体で表す。
後のステップは前のステップの成果物をすべて保持する。
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from nara_bid.core.models import BidRecord


# =============================================================================
# 成果物
# =============================================================================


class RFPFile(BaseModel):
    """アップロードされたRFP（または選択された入札公告）"""

    file_name: str
    upload_date: str = ""
    file_size: str = ""
    source: Literal["file", "nara-bid"] = "file"
    bid: BidRecord | None = None


class AnalysisResult(BaseModel):
    """RFP分析結果"""

    client_name: str
    industry: str
    department: str
    program_name: str
    objectives: list[str] = Field(default_factory=list)
    target_audience: str = ""
    schedule: str = ""
    location: str = ""
    modules: list[str] = Field(default_factory=list)
    special_requests: str = ""


class TrendInsight(BaseModel):
    topic: str
    insight: str
    source: str
    relevance_score: int


class StrategyOption(BaseModel):
    id: str
    title: str
    description: str
    key_features: list[str] = Field(default_factory=list)
    focus_area: str


class StrategyEvaluation(BaseModel):
    strategy_id: str
    score: int
    reasoning: str
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class CourseMatch(BaseModel):
    id: str
    module_name: str
    course_title: str
    instructor: str
    match_reason: str
    match_score: int
    is_external: bool = False


SlideType = Literal[
    "cover", "agenda", "overview", "trend", "curriculum", "instructor", "schedule", "closing"
]


class ProposalSlide(BaseModel):
    id: int
    title: str
    content: str
    type: SlideType


class QualityAssessment(BaseModel):
    compliance_score: int
    compliance_reason: str
    instructor_expertise_score: int
    instructor_expertise_reason: str
    industry_match_score: int
    industry_match_reason: str
    total_score: int
    overall_comment: str
    assessment_date: datetime | None = None


# =============================================================================
# ステップ状態
# =============================================================================


class UploadStep(BaseModel):
    step: Literal["upload"] = "upload"
    files: list[RFPFile] = Field(default_factory=list)


class AnalysisStep(BaseModel):
    step: Literal["analysis"] = "analysis"
    files: list[RFPFile]
    analysis: AnalysisResult


class ResearchStep(BaseModel):
    step: Literal["research"] = "research"
    files: list[RFPFile]
    analysis: AnalysisResult
    trends: list[TrendInsight]


class StrategyStep(BaseModel):
    step: Literal["strategy"] = "strategy"
    files: list[RFPFile]
    analysis: AnalysisResult
    trends: list[TrendInsight]
    strategies: list[StrategyOption]
    evaluations: list[StrategyEvaluation]
    selected: StrategyOption | None = None


class CurriculumStep(BaseModel):
    step: Literal["curriculum"] = "curriculum"
    files: list[RFPFile]
    analysis: AnalysisResult
    trends: list[TrendInsight]
    strategy: StrategyOption
    matches: list[CourseMatch]


class PreviewStep(BaseModel):
    step: Literal["preview"] = "preview"
    files: list[RFPFile]
    analysis: AnalysisResult
    trends: list[TrendInsight]
    strategy: StrategyOption
    matches: list[CourseMatch]
    slides: list[ProposalSlide]


class CompleteStep(BaseModel):
    step: Literal["complete"] = "complete"
    files: list[RFPFile]
    analysis: AnalysisResult
    trends: list[TrendInsight]
    strategy: StrategyOption
    matches: list[CourseMatch]
    slides: list[ProposalSlide]
    assessment: QualityAssessment


WizardState = Annotated[
    Union[
        UploadStep,
        AnalysisStep,
        ResearchStep,
        StrategyStep,
        CurriculumStep,
        PreviewStep,
        CompleteStep,
    ],
    Field(discriminator="step"),
]

STEP_ORDER = ("upload", "analysis", "research", "strategy", "curriculum", "preview", "complete")


class ProposalDraft(BaseModel):
    """保存可能なウィザードのスナップショット"""

    id: str
    last_updated: datetime
    state: WizardState

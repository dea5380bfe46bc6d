"""
提案書ウィザードモジュール
"""

from nara_bid.proposal.agents import (
    Analyzer,
    CurriculumMatcher,
    QualityScorer,
    SlideComposer,
    StrategyPlanner,
    StubAnalyzer,
    StubCurriculumMatcher,
    StubQualityScorer,
    StubSlideComposer,
    StubStrategyPlanner,
    StubTrendResearcher,
    TrendResearcher,
)
from nara_bid.proposal.models import (
    STEP_ORDER,
    AnalysisResult,
    AnalysisStep,
    CompleteStep,
    CourseMatch,
    CurriculumStep,
    PreviewStep,
    ProposalDraft,
    ProposalSlide,
    QualityAssessment,
    ResearchStep,
    RFPFile,
    StrategyEvaluation,
    StrategyOption,
    StrategyStep,
    TrendInsight,
    UploadStep,
    WizardState,
)
from nara_bid.proposal.transformer import bid_to_analysis, is_education_bid
from nara_bid.proposal.wizard import ProposalWizard, WizardError

__all__ = [
    "ProposalWizard",
    "WizardError",
    "bid_to_analysis",
    "is_education_bid",
    "WizardState",
    "STEP_ORDER",
    "UploadStep",
    "AnalysisStep",
    "ResearchStep",
    "StrategyStep",
    "CurriculumStep",
    "PreviewStep",
    "CompleteStep",
    "ProposalDraft",
    "RFPFile",
    "AnalysisResult",
    "TrendInsight",
    "StrategyOption",
    "StrategyEvaluation",
    "CourseMatch",
    "ProposalSlide",
    "QualityAssessment",
    "Analyzer",
    "TrendResearcher",
    "StrategyPlanner",
    "CurriculumMatcher",
    "SlideComposer",
    "QualityScorer",
    "StubAnalyzer",
    "StubTrendResearcher",
    "StubStrategyPlanner",
    "StubCurriculumMatcher",
    "StubSlideComposer",
    "StubQualityScorer",
]

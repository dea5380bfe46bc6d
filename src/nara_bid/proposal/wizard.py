"""
提案書ウィザード

アップロード → 分析 → トレンド調査 → 戦略選択 → カリキュラム照合 → スライド構成 → 品質評価
の一方向のパイプラインを状態機械として進める。
"""

import logging
import uuid
from datetime import datetime, timezone

from nara_bid.core.models import BidRecord
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
    AnalysisStep,
    CompleteStep,
    CurriculumStep,
    PreviewStep,
    ProposalDraft,
    ResearchStep,
    RFPFile,
    StrategyStep,
    UploadStep,
)
from nara_bid.proposal.transformer import bid_to_analysis

logger = logging.getLogger(__name__)


class WizardError(Exception):
    """ウィザードの不正な遷移"""


class ProposalWizard:
    """提案書ウィザード"""

    def __init__(
        self,
        analyzer: Analyzer | None = None,
        researcher: TrendResearcher | None = None,
        planner: StrategyPlanner | None = None,
        matcher: CurriculumMatcher | None = None,
        composer: SlideComposer | None = None,
        scorer: QualityScorer | None = None,
    ):
        self.analyzer = analyzer or StubAnalyzer()
        self.researcher = researcher or StubTrendResearcher()
        self.planner = planner or StubStrategyPlanner()
        self.matcher = matcher or StubCurriculumMatcher()
        self.composer = composer or StubSlideComposer()
        self.scorer = scorer or StubQualityScorer()
        self.state = UploadStep()

    def _expect(self, step_type):
        if not isinstance(self.state, step_type):
            expected = step_type.model_fields["step"].default
            raise WizardError(f"現在のステップ「{self.state.step}」では実行できません（必要: {expected}）")
        return self.state

    def start(self, files: list[RFPFile]) -> UploadStep:
        """ファイルを受け取り最初からやり直す"""
        self.state = UploadStep(files=list(files))
        return self.state

    def start_from_bid(self, bid: BidRecord) -> AnalysisStep:
        """入札公告を分析済みRFPとして分析ステップから開始"""
        file = RFPFile(
            file_name=bid.bid_ntce_nm,
            upload_date=datetime.now(timezone.utc).date().isoformat(),
            file_size="-",
            source="nara-bid",
            bid=bid,
        )
        self.state = AnalysisStep(files=[file], analysis=bid_to_analysis(bid))
        logger.info(f"入札公告から開始: {bid.bid_ntce_no}-{bid.bid_ntce_ord}")
        return self.state

    async def analyze(self) -> AnalysisStep:
        state = self._expect(UploadStep)
        if not state.files:
            raise WizardError("RFPファイルがありません")
        analysis = await self.analyzer.analyze(state.files[0])
        self.state = AnalysisStep(files=state.files, analysis=analysis)
        return self.state

    async def research(self) -> ResearchStep:
        state = self._expect(AnalysisStep)
        trends = await self.researcher.research(state.analysis.modules)
        self.state = ResearchStep(files=state.files, analysis=state.analysis, trends=trends)
        return self.state

    async def plan_strategies(self) -> StrategyStep:
        state = self._expect(ResearchStep)
        strategies = await self.planner.generate(state.analysis, state.trends)
        evaluations = await self.planner.evaluate(strategies)
        self.state = StrategyStep(
            files=state.files,
            analysis=state.analysis,
            trends=state.trends,
            strategies=strategies,
            evaluations=evaluations,
        )
        return self.state

    def best_strategy_id(self) -> str:
        """評価スコアが最も高い戦略"""
        state = self._expect(StrategyStep)
        if not state.evaluations:
            if not state.strategies:
                raise WizardError("戦略がありません")
            return state.strategies[0].id
        return max(state.evaluations, key=lambda e: e.score).strategy_id

    def select_strategy(self, strategy_id: str) -> StrategyStep:
        state = self._expect(StrategyStep)
        for strategy in state.strategies:
            if strategy.id == strategy_id:
                self.state = state.model_copy(update={"selected": strategy})
                return self.state
        raise WizardError(f"戦略が見つかりません: {strategy_id}")

    async def match_curriculum(self) -> CurriculumStep:
        state = self._expect(StrategyStep)
        if state.selected is None:
            raise WizardError("戦略が選択されていません")
        matches = await self.matcher.match(state.analysis.modules, state.trends, state.selected)
        self.state = CurriculumStep(
            files=state.files,
            analysis=state.analysis,
            trends=state.trends,
            strategy=state.selected,
            matches=matches,
        )
        return self.state

    async def compose(self) -> PreviewStep:
        state = self._expect(CurriculumStep)
        slides = await self.composer.compose(state.analysis, state.trends, state.matches)
        self.state = PreviewStep(**state.model_dump(exclude={"step"}), slides=slides)
        return self.state

    async def assess(self) -> CompleteStep:
        state = self._expect(PreviewStep)
        assessment = await self.scorer.score(state.analysis, state.matches)
        self.state = CompleteStep(**state.model_dump(exclude={"step"}), assessment=assessment)
        logger.info(f"提案書完成: 総合スコア {assessment.total_score}")
        return self.state

    async def run_all(self, files: list[RFPFile], strategy_id: str | None = None) -> CompleteStep:
        """アップロードから品質評価まで一括実行"""
        self.start(files)
        await self.analyze()
        return await self._run_from_analysis(strategy_id)

    async def run_from_bid(self, bid: BidRecord, strategy_id: str | None = None) -> CompleteStep:
        """入札公告から品質評価まで一括実行"""
        self.start_from_bid(bid)
        return await self._run_from_analysis(strategy_id)

    async def _run_from_analysis(self, strategy_id: str | None) -> CompleteStep:
        await self.research()
        await self.plan_strategies()
        self.select_strategy(strategy_id or self.best_strategy_id())
        await self.match_curriculum()
        await self.compose()
        return await self.assess()

    def snapshot(self, draft_id: str | None = None) -> ProposalDraft:
        """現在の状態を保存用スナップショットにする"""
        return ProposalDraft(
            id=draft_id or uuid.uuid4().hex,
            last_updated=datetime.now(timezone.utc),
            state=self.state,
        )

    def restore(self, draft: ProposalDraft) -> None:
        self.state = draft.state

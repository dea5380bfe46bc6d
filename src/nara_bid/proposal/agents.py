"""
提案書生成エージェント

各ステップの生成処理をインターフェースとして定義し、固定データを返すスタブ実装を提供する。
LLMを使う実装は同じインターフェースを満たせば差し替えられる。
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol

from nara_bid.proposal.models import (
    AnalysisResult,
    CourseMatch,
    ProposalSlide,
    QualityAssessment,
    RFPFile,
    StrategyEvaluation,
    StrategyOption,
    TrendInsight,
)


class Analyzer(Protocol):
    async def analyze(self, file: RFPFile) -> AnalysisResult: ...


class TrendResearcher(Protocol):
    async def research(self, modules: list[str]) -> list[TrendInsight]: ...


class StrategyPlanner(Protocol):
    async def generate(self, analysis: AnalysisResult, trends: list[TrendInsight]) -> list[StrategyOption]: ...

    async def evaluate(self, strategies: list[StrategyOption]) -> list[StrategyEvaluation]: ...


class CurriculumMatcher(Protocol):
    async def match(
        self,
        modules: list[str],
        trends: list[TrendInsight],
        strategy: StrategyOption | None,
    ) -> list[CourseMatch]: ...


class SlideComposer(Protocol):
    async def compose(
        self,
        analysis: AnalysisResult,
        trends: list[TrendInsight],
        matches: list[CourseMatch],
    ) -> list[ProposalSlide]: ...


class QualityScorer(Protocol):
    async def score(self, analysis: AnalysisResult, matches: list[CourseMatch]) -> QualityAssessment: ...


# =============================================================================
# スタブ実装
# =============================================================================


class _Delayed:
    """処理時間を模した待機（既定は待たない）"""

    def __init__(self, delay: float = 0.0):
        self.delay = delay

    async def _wait(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)


class StubAnalyzer(_Delayed):
    async def analyze(self, file: RFPFile) -> AnalysisResult:
        await self._wait()
        name = file.file_name
        is_tech = any(word in name for word in ("AI", "데이터", "DT"))
        is_bank = any(word in name for word in ("금융", "은행"))
        program = name.removesuffix(".pdf").removesuffix(".pptx") or "2025년 차세대 리더십 과정"
        return AnalysisResult(
            client_name="한국미래은행" if is_bank else ("테크솔루션즈" if is_tech else "대한제조(주)"),
            industry="금융/은행" if is_bank else ("IT/소프트웨어" if is_tech else "제조/화학"),
            department="인재개발팀",
            program_name=program,
            objectives=[
                "디지털 전환(DT) 시대에 맞는 리더십 함양",
                "데이터 기반 의사결정 능력 강화",
                "MZ세대 팀원과의 효과적인 소통 및 코칭 스킬 습득",
            ],
            target_audience="팀장급 및 예비 리더 30명",
            schedule="2025년 5월 중 (2박 3일 집합 교육)",
            location="용인 엑스퍼트 연수원",
            modules=[
                "DT 트렌드와 리더의 역할",
                "데이터 리터러시 워크숍",
                "세대 공감 커뮤니케이션 & 코칭",
            ],
            special_requests="실습 위주의 구성 요청, 최신 트렌드 사례 포함 필수",
        )


class StubTrendResearcher(_Delayed):
    async def research(self, modules: list[str]) -> list[TrendInsight]:
        await self._wait()
        return [
            TrendInsight(
                topic="Digital Transformation",
                insight="AI 도입 가속화에 따른 리더의 기술 이해도가 필수 역량으로 부상함.",
                source="HBR 2024",
                relevance_score=95,
            ),
            TrendInsight(
                topic="Employee Experience (EX)",
                insight="MZ세대 유지(Retention)를 위한 '성장 경험' 제공이 중요.",
                source="Gartner HR Trends",
                relevance_score=88,
            ),
            TrendInsight(
                topic="Data Driven Decision",
                insight="직관이 아닌 데이터에 기반한 의사결정 문화 확산.",
                source="McKinsey",
                relevance_score=92,
            ),
        ]


class StubStrategyPlanner(_Delayed):
    async def generate(self, analysis: AnalysisResult, trends: list[TrendInsight]) -> list[StrategyOption]:
        await self._wait()
        return [
            StrategyOption(
                id="strat-1",
                title="기술 혁신 주도형 (Tech-Driven)",
                focus_area="Digital Transformation",
                description="최신 AI 및 데이터 분석 도구를 적극 활용하여 실무 효율성을 극대화하는 실습 중심 전략입니다.",
                key_features=["생성형 AI 활용 실습 50% 비중", "최신 Tech 트렌드 심층 분석", "Digital Tool 활용 워크숍"],
            ),
            StrategyOption(
                id="strat-2",
                title="조직 문화 혁신형 (Culture-First)",
                focus_area="Organizational Culture",
                description="세대 간 소통과 심리적 안전감을 기반으로 한 부드러운 리더십 변화를 유도하는 전략입니다.",
                key_features=["MZ세대 역멘토링 세션", "심리 진단 기반 코칭", "토론 및 게이미피케이션"],
            ),
            StrategyOption(
                id="strat-3",
                title="현장 성과 중심형 (Performance-Based)",
                focus_area="Field Application",
                description="현업의 실제 페인포인트(Pain Point)를 해결하는 문제 해결 중심(PBL) 전략입니다.",
                key_features=["사전 과제 및 현장 이슈 도출", "액션 러닝 프로젝트 수행", "현업 적용 팔로우업"],
            ),
        ]

    async def evaluate(self, strategies: list[StrategyOption]) -> list[StrategyEvaluation]:
        await self._wait()
        canned = {
            "strat-1": StrategyEvaluation(
                strategy_id="strat-1",
                score=88,
                reasoning="고객사의 DT 니즈에 가장 부합하나, 비개발 직군에게는 난이도가 높을 수 있음.",
                pros=["트렌드 부합성 높음", "산출물 명확"],
                cons=["실습 환경 구축 필요", "높은 강사료 예상"],
            ),
            "strat-2": StrategyEvaluation(
                strategy_id="strat-2",
                score=92,
                reasoning="RFP에 명시된 '세대 공감' 키워드와 가장 잘 맞으며 안정적인 운영이 가능함.",
                pros=["높은 교육 만족도 예상", "리스크 적음"],
                cons=["성과 측정의 어려움", "다소 평이한 구성"],
            ),
            "strat-3": StrategyEvaluation(
                strategy_id="strat-3",
                score=85,
                reasoning="실질적 성과는 기대되나, 2박 3일 일정 내에 프로젝트 완수는 현실적으로 어려움이 있음.",
                pros=["현업 연계성 최상", "경영진 선호"],
                cons=["일정 압박", "사전 준비 부담 큼"],
            ),
        }
        return [
            canned.get(s.id) or StrategyEvaluation(strategy_id=s.id, score=80, reasoning="평가 데이터 없음")
            for s in strategies
        ]


class StubCurriculumMatcher(_Delayed):
    async def match(
        self,
        modules: list[str],
        trends: list[TrendInsight],
        strategy: StrategyOption | None,
    ) -> list[CourseMatch]:
        await self._wait()
        prefix = f"[{strategy.focus_area}] " if strategy else ""
        top_trend = trends[0].topic if trends else "최신 동향"
        matches = []
        for idx, module in enumerate(modules):
            if strategy:
                reason = (
                    f"선택하신 '{strategy.title}' 전략에 맞춰 {strategy.focus_area} 요소를 30% 강화하여 설계했습니다."
                )
            else:
                reason = f"트렌드 분석 결과({top_trend})를 반영하여 해당 모듈을 선정했습니다."
            matches.append(CourseMatch(
                id=f"course-{idx}",
                module_name=module,
                course_title=f"{prefix}Expert {module} 마스터 클래스",
                instructor="김철수 수석" if idx % 2 == 0 else "이영희 이사",
                match_reason=reason,
                # 順位で決まる固定値
                match_score=max(90, 99 - idx),
            ))
        return matches


class StubSlideComposer(_Delayed):
    async def compose(
        self,
        analysis: AnalysisResult,
        trends: list[TrendInsight],
        matches: list[CourseMatch],
    ) -> list[ProposalSlide]:
        await self._wait()
        objectives = "\n".join(f"- {o}" for o in analysis.objectives)
        slides = [
            ProposalSlide(
                id=1,
                title=analysis.program_name,
                content=f"제안서\n\n{analysis.client_name} 귀중\n성공적인 리더 육성을 위한 제안",
                type="cover",
            ),
            ProposalSlide(
                id=2,
                title="제안 배경 및 목적",
                content=(
                    f"본 과정은 {analysis.client_name} {analysis.department}의 "
                    f"{analysis.target_audience}을 대상으로 합니다.\n주요 목표:\n{objectives}"
                ),
                type="overview",
            ),
            ProposalSlide(
                id=3,
                title="최신 트렌드 인사이트",
                content="\n\n".join(f"[{t.topic}] {t.insight} (출처: {t.source})" for t in trends),
                type="trend",
            ),
        ]
        for idx, match in enumerate(matches):
            slides.append(ProposalSlide(
                id=4 + idx,
                title=f"Module {idx + 1}: {match.course_title}",
                content=(
                    f"강사: {match.instructor}\n\n매칭 포인트:\n{match.match_reason}\n\n"
                    f"이 모듈은 고객사의 요청인 '{match.module_name}'을 완벽하게 커버합니다."
                ),
                type="curriculum",
            ))
        slides.append(ProposalSlide(
            id=99,
            title="추진 일정 및 장소",
            content=f"{analysis.schedule} 진행 예정\n장소: {analysis.location}\n\n사전 진단 -> 본 교육 -> 사후 팔로우업",
            type="schedule",
        ))
        slides.append(ProposalSlide(id=100, title="감사합니다", content="엑스퍼트컨설팅\n문의: 02-1234-5678", type="closing"))
        return slides


class StubQualityScorer(_Delayed):
    async def score(self, analysis: AnalysisResult, matches: list[CourseMatch]) -> QualityAssessment:
        await self._wait()
        return QualityAssessment(
            compliance_score=92,
            compliance_reason=f"RFP에 명시된 교육 모듈 {len(analysis.modules)}가지를 모두 포함하고 있으며 일정과 대상도 정확히 반영됨.",
            instructor_expertise_score=88,
            instructor_expertise_reason="추천된 강사진의 이력이 요구 주제와 잘 매칭되나, 일부 심화 주제는 외부 전문가 고려 필요.",
            industry_match_score=85,
            industry_match_reason="제안된 사례가 해당 산업군에 적합하나, 조금 더 특화된 케이스 스터디 보강 권장.",
            total_score=89,
            overall_comment="전반적으로 우수한 제안서입니다. 트렌드 섹션을 조금 더 보강하면 수주 확률이 높아질 것입니다.",
            assessment_date=datetime.now(timezone.utc),
        )

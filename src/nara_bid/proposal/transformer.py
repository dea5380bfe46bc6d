"""
入札公告 → RFP分析結果 変換

保存済みの入札公告を分析済みRFPとして扱い、ウィザードを分析ステップから開始できるようにする。
"""

from nara_bid.core.config import DEFAULT_KEYWORDS
from nara_bid.core.models import BidRecord
from nara_bid.ingest.filters import matches_any_keyword
from nara_bid.proposal.models import AnalysisResult

# (タイトルに含まれる語, 対応する値) の順序付きルール
INDUSTRY_RULES = (
    (("교육",), "교육"),
    (("제조",), "제조/생산"),
    (("건설",), "건설/인프라"),
    (("IT", "정보통신"), "IT/통신"),
    (("금융",), "금융/보험"),
    (("의료", "보건"), "의료/보건"),
)

OBJECTIVE_RULES = (
    (("역량강화", "역량 강화"), "핵심 역량 강화"),
    (("리더십",), "리더십 개발"),
    (("교육", "과정"), "전문 교육 실시"),
    (("워크숍", "세미나"), "실무 워크숍 진행"),
    (("컨설팅",), "전문 컨설팅 제공"),
)

MODULE_RULES = (
    (("리더십",), "리더십 개발"),
    (("소통", "커뮤니케이션"), "커뮤니케이션 스킬"),
    (("AI", "인공지능"), "AI 활용 교육"),
    (("DT", "디지털"), "디지털 트랜스포메이션"),
    (("데이터",), "데이터 분석"),
    (("안전",), "안전 교육"),
    (("CS", "고객"), "고객 서비스"),
    (("ESG",), "ESG 경영"),
)

DEFAULT_OBJECTIVES = ("교육 프로그램 운영", "실무 역량 향상")
DEFAULT_MODULES = ("교육 프로그램 모듈 1", "교육 프로그램 모듈 2")


def _apply_rules(text: str, rules) -> list[str]:
    return [value for words, value in rules if any(word in text for word in words)]


def extract_industry(industry_name: str) -> str:
    if not industry_name:
        return "공공/교육"
    matched = _apply_rules(industry_name, INDUSTRY_RULES)
    return matched[0] if matched else industry_name


def extract_objectives(title: str) -> list[str]:
    return _apply_rules(title, OBJECTIVE_RULES) or list(DEFAULT_OBJECTIVES)


def extract_modules(title: str) -> list[str]:
    return _apply_rules(title, MODULE_RULES) or list(DEFAULT_MODULES)


def _format_date(value: str) -> str:
    if len(value) < 8:
        return ""
    return f"{value[:4]}-{value[4:6]}-{value[6:8]}"


def format_schedule(begin: str, end: str) -> str:
    """入札期間から日程の表示文字列を作る"""
    if not begin and not end:
        return "일정 미정"

    begin_date = _format_date(begin)
    end_date = _format_date(end)
    if begin_date and end_date:
        return f"{begin_date} ~ {end_date} (입찰 기간 기준)"
    if begin_date:
        return f"{begin_date}부터"
    if end_date:
        return f"{end_date}까지"
    return "일정 협의"


def bid_to_analysis(bid: BidRecord) -> AnalysisResult:
    """入札公告を分析済みRFPに変換"""
    requests = [
        f"예상 예산: {bid.presmpt_prce}원" if bid.presmpt_prce else "",
        f"입찰 공고 URL: {bid.bid_ntce_url}",
        f"공고번호: {bid.bid_ntce_no}-{bid.bid_ntce_ord}",
        f"사업 구분: {bid.bsns_div_nm or '미명시'}",
    ]
    return AnalysisResult(
        client_name=bid.ntce_instt_nm or bid.dminstt_nm or "발주 기관",
        industry=extract_industry(bid.bidprc_psbl_indstryty_nm),
        department=bid.dminstt_nm or "수요 부서",
        program_name=bid.bid_ntce_nm,
        objectives=extract_objectives(bid.bid_ntce_nm),
        target_audience="교육 대상자 (RFP 문서 참조)",
        schedule=format_schedule(bid.bid_ntce_bgn_dt, bid.bid_ntce_end_dt),
        location=bid.prtcpt_psbl_rgn_nm or "지역 미명시",
        modules=extract_modules(bid.bid_ntce_nm),
        special_requests=" | ".join(r for r in requests if r),
    )


def is_education_bid(bid: BidRecord, keywords=DEFAULT_KEYWORDS) -> bool:
    """公告名が教育系キーワードのいずれかを含むか"""
    return matches_any_keyword(bid, keywords)

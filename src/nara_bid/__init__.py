"""
nara-bid

나라장터（公共調達）入札公告の同期エンジンと提案書作成ウィザード。
"""

__version__ = "0.1.0"

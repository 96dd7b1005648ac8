"""
Fund Type Classification
========================
Static keyword table mapping fund names to a type key, plus the derived
category (history window / lookahead / risk ceiling), volatility-target key
and market type (premium gate).
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class FundType:
    """Detected fund type."""
    type_key: str
    type_name: str
    confidence: float

    @property
    def category(self) -> str:
        return category_for(self.type_key)

    @property
    def quant_key(self) -> str:
        return quant_key_for(self.type_key)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['category'] = self.category
        return data


# type_key -> (type name, name keywords); first matching type wins
FUND_TYPES: Dict[str, Tuple[str, List[str]]] = {
    'commodity_gold': ('商品型-黄金', ['黄金ETF', '贵金属', '上海金', 'COMEX', '伦敦金']),
    'commodity_oil': ('商品型-原油', ['原油', '石油', 'OPEC', 'WTI', '布伦特']),
    'equity_tech': ('股票型-科技', ['科技', '半导体', '芯片', 'AI', '人工智能', 'TMT']),
    'equity_medicine': ('股票型-医药', ['医药', '医疗', '创新药', 'CXO', '医疗器械', '生物科技']),
    'equity_new_energy': ('股票型-新能源', ['新能源', '光伏', '锂电', '储能', '电动车', '碳中和']),
    'equity_consumption': ('股票型-消费', ['消费', '白酒', '食品饮料', '家电', '免税', '医美']),
    'equity_finance': ('股票型-金融', ['银行', '券商', '保险', '金融', '地产']),
    'index_broad': ('指数型-宽基', ['沪深300', '中证500', '中证1000', '上证50', '创业板指', '科创板']),
    'index_sector': ('指数型-行业', ['行业ETF', '主题ETF', 'SmartBeta']),
    'bond_rate': ('债券型-利率债', ['国债', '政金债', '利率债', '纯债']),
    'bond_credit': ('债券型-信用债', ['信用债', '企业债', '公司债', '城投债']),
    'bond_convertible': ('债券型-可转债', ['可转债', '转债']),
    'hybrid_balanced': ('混合型-平衡', ['平衡混合', '股债平衡']),
    'hybrid_flexible': ('混合型-灵活配置', ['灵活配置', '偏股混合', '偏债混合']),
    'qdii_us': ('QDII-美股', ['纳斯达克', '标普500', '美股', '道琼斯']),
    'qdii_hk': ('QDII-港股', ['恒生科技', '恒生指数', '港股', '中概互联']),
    'qdii_emerging': ('QDII-新兴市场', ['越南', '印度', '东南亚', '新兴市场']),
    'reits': ('REITs', ['REITs', '基础设施', '产业园', '高速公路', '仓储物流']),
    'fof': ('FOF', ['FOF', '基金中基金', '养老FOF']),
    'money_market': ('货币型', ['货币基金', '余额宝', '现金管理'])
}

# Code prefix fallback when no keyword matches
CODE_PREFIX_TYPES = {
    '51': 'commodity_gold',
    '16': 'bond_rate',
    '15': 'bond_credit'
}

DEFAULT_TYPE = 'hybrid_flexible'

_INDEX_LIKE = re.compile(r'指数|ETF|QDII|联接')
_ETF_CODE = re.compile(r'^[5169]\d{5}$')


def detect_fund_type(name: str = "", code: str = "") -> FundType:
    """Keyword match on the fund name, then code prefix, then the default type."""
    name = str(name or '').strip()
    upper = name.upper()
    code = str(code or '')

    for type_key, (type_name, keywords) in FUND_TYPES.items():
        for keyword in keywords:
            if keyword in name or keyword.upper() in upper:
                return FundType(type_key, type_name, 0.8)

    type_key = CODE_PREFIX_TYPES.get(code[:2])
    if type_key:
        return FundType(type_key, FUND_TYPES[type_key][0], 0.6)

    return FundType(DEFAULT_TYPE, FUND_TYPES[DEFAULT_TYPE][0], 0.5)


def category_for(type_key: str) -> str:
    """Map a type key to money / bond / qdii / equity."""
    key = str(type_key or '')
    if key == 'money_market':
        return 'money'
    if key.startswith('bond_'):
        return 'bond'
    if key.startswith('qdii_') or key.startswith('commodity_'):
        return 'qdii'
    return 'equity'


def quant_key_for(type_key: str) -> str:
    """Volatility-target key; money funds are scored like bonds."""
    category = category_for(type_key)
    if category in ('money', 'bond'):
        return 'bond'
    return category


def market_type_for(name: str, code: str, type_key: str) -> str:
    """Trading venue label; the rules overlap, so order matters."""
    name = name or ''
    type_key = type_key or ''
    if '联接' in name:
        return 'linked'
    if re.search(r'QDII', name, re.IGNORECASE):
        return 'qdii'
    if type_key.startswith('commodity_'):
        return 'commodity'
    if type_key == 'reits':
        return 'reits'
    if re.search(r'ETF', name, re.IGNORECASE) or _ETF_CODE.match(str(code or '')):
        return 'etf'
    return 'otc'


def is_index_like(fund_type: FundType, fund_name: str = "") -> bool:
    """Index trackers get a heavier structural weight when merging."""
    key = fund_type.type_key if fund_type else ''
    text = (fund_type.type_name if fund_type else '') + (fund_name or '')
    return bool(_INDEX_LIKE.search(text)) or key.startswith('index_') or key.startswith('qdii_')

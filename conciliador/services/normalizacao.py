"""
Normalização de campos dos extratos: CNPJ/CPF, nome do favorecido, tipo do
lançamento bancário, datas, valores em formato brasileiro e compatibilidade
de nomes entre banco/cartão e Omie.

Funções puras, sem estado. Entradas malformadas nunca levantam exceção:
datas viram None, valores viram 0.0, CNPJ/CPF inválidos voltam inalterados.
"""
import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional

import pandas as pd

from conciliador.models.regras import (
    PREFIXOS_BANCO,
    REGRAS_CLASSIFICACAO_BANCO,
    STOPWORDS_NOME,
    STOPWORDS_NOME_CARTAO,
    TIPO_BANCO_PADRAO,
)

# Epoch das datas seriais de planilha (Excel conta 1900 como bissexto)
_EPOCH_PLANILHA = date(1899, 12, 30)

_RE_NAO_DIGITO = re.compile(r"\D")
_RE_CNPJ = re.compile(r"(\d{14})")
_RE_CPF = re.compile(r"(?<!\d)(\d{11})(?!\d)")
_RE_NUMERO_INICIAL = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
_RE_DATA_BR = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_RE_DATA_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_RE_PARECE_DATA = re.compile(r"\d{1,4}[/\-.]\d{1,2}")
_RE_BORDAS = re.compile(r"^[\s\-/]+|[\s\-/]+$")


# ---------------------------------------------------------------------------
# CNPJ / CPF
# ---------------------------------------------------------------------------


def normalize_cnpj_cpf(val: Optional[str]) -> str:
    """Mantém só os dígitos. None/vazio → ''."""
    if not val:
        return ""
    return _RE_NAO_DIGITO.sub("", str(val))


def format_cnpj(raw: str) -> str:
    """00.000.000/0000-00 quando houver exatamente 14 dígitos; senão devolve a entrada."""
    digits = normalize_cnpj_cpf(raw)
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return raw


def format_cpf(raw: str) -> str:
    """000.000.000-00 quando houver exatamente 11 dígitos; senão devolve a entrada."""
    digits = normalize_cnpj_cpf(raw)
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    return raw


def extract_cnpj_cpf(desc: str) -> str:
    """Procura um CNPJ (14 dígitos seguidos) e, se não houver, um CPF isolado (11 dígitos)."""
    if not desc:
        return ""
    m = _RE_CNPJ.search(desc)
    if m:
        return format_cnpj(m.group(1))
    m = _RE_CPF.search(desc)
    if m:
        return format_cpf(m.group(1))
    return ""


# ---------------------------------------------------------------------------
# Histórico bancário
# ---------------------------------------------------------------------------


def extract_nome_banco(desc: str, prefixos: Iterable[str] = PREFIXOS_BANCO) -> str:
    """Extrai o nome do favorecido do histórico bancário.

    Remove o primeiro prefixo conhecido ("PAGAMENTO PIX", "TED"...), os números
    de CNPJ/CPF e separadores nas bordas. Se nada sobrar, devolve o histórico.
    """
    clean = desc or ""
    upper = clean.upper()
    for prefix in prefixos:
        if upper.startswith(prefix):
            clean = clean[len(prefix):].strip()
            break

    clean = re.sub(r"\d{14}", "", clean).strip()
    clean = re.sub(r"(?<!\d)\d{11}(?!\d)", "", clean).strip()
    clean = _RE_BORDAS.sub("", clean)
    return clean or desc


def classify_banco(desc: str, regras=REGRAS_CLASSIFICACAO_BANCO, padrao: str = TIPO_BANCO_PADRAO) -> str:
    """Classifica o lançamento bancário pelo histórico (primeira regra que casa vence)."""
    d = (desc or "").upper()
    for modo, padroes, tipo in regras:
        if modo == "prefixo":
            if any(d.startswith(p) for p in padroes):
                return tipo
        elif any(p in d for p in padroes):
            return tipo
    return padrao


def normalize_text(text: str) -> str:
    """Remove acentos e converte para minúsculas (comparação de status/origem)."""
    nfkd = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in nfkd if not unicodedata.combining(c)).lower()


# ---------------------------------------------------------------------------
# Compatibilidade de nomes
# ---------------------------------------------------------------------------


def _tokens(text: str, stopwords: frozenset[str] = frozenset()) -> list[str]:
    return [w for w in text.split() if len(w) > 2 and w not in stopwords]


def _sobreposicao(tokens_o: list[str], tokens_x: list[str]) -> int:
    """Quantos tokens do Omie aparecem (como substring, nos dois sentidos) em algum token do outro lado."""
    return sum(1 for w in tokens_o if any(w in wx or wx in w for wx in tokens_x))


def nome_compativel(
    nome_banco: str,
    desc_banco: str,
    nome_omie: str,
    razao_omie: str,
    stopwords: frozenset[str] = STOPWORDS_NOME,
) -> bool:
    """Verifica se o favorecido do banco é compatível com o cliente/fornecedor do Omie.

    Testa o nome fantasia e a razão social do Omie. Compatível quando pelo menos
    min(2, n) tokens do Omie batem com tokens do banco, ou quando o primeiro
    token do Omie aparece literalmente no histórico bancário.
    """
    nome_b = (nome_banco or "").upper().strip()
    desc_b = (desc_banco or "").upper().strip()
    nome_o = (nome_omie or "").upper().strip()
    razao_o = (razao_omie or "").upper().strip()

    if not nome_o and not razao_o:
        return False
    if not nome_b and not desc_b:
        return False

    tokens_b = _tokens(nome_b) + _tokens(desc_b)
    if not tokens_b:
        return False

    for n_o in (nome_o, razao_o):
        if not n_o:
            continue
        tokens_o = _tokens(n_o, stopwords)
        if not tokens_o:
            continue

        if _sobreposicao(tokens_o, tokens_b) >= min(2, len(tokens_o)):
            return True
        if tokens_o[0] in desc_b:
            return True

    return False


def nome_compativel_cartao(
    desc_cartao: str,
    nome_omie: str,
    razao_omie: str,
    stopwords: frozenset[str] = STOPWORDS_NOME_CARTAO,
) -> bool:
    """Versão para a fatura do cartão: descrições curtas, basta um token em comum."""
    desc_c = " ".join((desc_cartao or "").upper().split())
    tokens_c = _tokens(desc_c)
    if not tokens_c:
        return False

    for n_o in ((nome_omie or "").upper().strip(), (razao_omie or "").upper().strip()):
        if not n_o:
            continue
        tokens_o = _tokens(n_o, stopwords)
        if tokens_o and _sobreposicao(tokens_o, tokens_c) >= 1:
            return True

    return False


# ---------------------------------------------------------------------------
# Datas e valores
# ---------------------------------------------------------------------------


def _as_date(val: Any) -> date:
    return val.date() if isinstance(val, datetime) else val


def days_diff(d1: date, d2: date) -> int:
    """Diferença absoluta em dias inteiros."""
    return abs((_as_date(d1) - _as_date(d2)).days)


def parse_date(val: Any) -> Optional[date]:
    """Converte célula de planilha/CSV em date.

    Aceita date/datetime, número serial de planilha, 'dd/mm/aaaa', ISO
    ('aaaa-mm-dd...') e, por último, o parser genérico do pandas (dia primeiro).
    Retorna None quando nada funciona.
    """
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return None if pd.isna(val) else val.date()
    if isinstance(val, date):
        return val

    if isinstance(val, (int, float)) and not isinstance(val, bool):
        if isinstance(val, float) and math.isnan(val):
            return None
        try:
            return _EPOCH_PLANILHA + timedelta(days=int(val))
        except OverflowError:
            return None

    s = str(val).strip()

    m = _RE_DATA_BR.match(s)
    if m:
        try:
            return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        except ValueError:
            return None

    m = _RE_DATA_ISO.match(s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None

    # Parser genérico só para textos com cara de data ("5/3/24", "15.03.2024")
    if not _RE_PARECE_DATA.search(s):
        return None
    parsed = pd.to_datetime(s, dayfirst=True, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_valor_brl(val: Optional[str]) -> float:
    """Converte 'R$ 1.234,56' → 1234.56. Vazio ou inválido → 0.0.

    Só o número no início conta: '1.234,56 D' → 1234.56.
    """
    if not val:
        return 0.0
    clean = str(val).replace('"', "").replace("R$", "")
    clean = re.sub(r"\s+", "", clean)
    clean = clean.replace(".", "").replace(",", ".", 1)
    m = _RE_NUMERO_INICIAL.match(clean)
    if not m:
        return 0.0
    return float(m.group(0))


def parse_numero(val: Any) -> Optional[float]:
    """Valor numérico de uma célula: números passam direto, textos em formato BR
    ('-1.500,00') ou com ponto decimal ('-1500.00'). None quando não é número."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return None if math.isnan(val) else float(val)

    s = re.sub(r"\s+", "", str(val).replace("R$", ""))
    if not s:
        return None
    if "," in s:
        s = s.replace(".", "").replace(",", ".", 1)
    try:
        num = float(s)
    except ValueError:
        return None
    return None if math.isnan(num) else num


def valores_iguais(v1: float, v2: float, tolerancia: float) -> bool:
    """Igualdade monetária com tolerância inclusiva (diferença arredondada a centavos)."""
    return round(abs(v1 - v2), 2) <= tolerancia


def format_date_br(d: Optional[date]) -> str:
    return d.strftime("%d/%m/%Y") if d else ""

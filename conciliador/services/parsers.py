"""
Parsers dos três arquivos da conciliação.

  - parse_banco            — extrato Sicredi (XLS/XLSX/CSV) → LancamentoBanco
  - parse_omie             — movimentação Omie (XLSX/CSV)    → LancamentoOmie
  - parse_cartao_from_text — fatura Sicredi (CSV)             → TransacaoCartao + CartaoInfo

Os parsers recebem linhas já extraídas (lista de listas de células, ou texto
no caso da fatura). workbook_to_rows / csv_to_rows / csv_to_text fazem a
decodificação dos bytes e são a única parte que depende do formato físico do arquivo.

Linhas que não viram lançamento (data ou valor inválidos) são descartadas sem
erro e registradas em `ignoradas` com o motivo.
"""
import io
import logging
import re
from datetime import date, datetime
from typing import Any, Iterator, Optional

import pandas as pd

from conciliador.models.lancamentos import (
    CartaoInfo,
    LancamentoBanco,
    LancamentoOmie,
    LinhaIgnorada,
    LinhaParseada,
    ResultadoParse,
    ResultadoParseCartao,
    TransacaoCartao,
)
from conciliador.models.regras import (
    COLUNA_SALDO_BANCO,
    COLUNAS_OMIE_PADRAO,
    FIM_LANCAMENTOS_BANCO,
    LINHA_INICIAL_BANCO,
    LINHAS_INFO_CARTAO,
    MAPA_COLUNAS_OMIE,
    MARCADOR_PAGAMENTO_FATURA,
    MARCADOR_PAGAMENTO_FATURA_CURTO,
    PADRAO_DOC_CARTAO_IMPORTADO,
    ROTULOS_INFO_CARTAO,
)
from conciliador.services.normalizacao import (
    classify_banco,
    extract_cnpj_cpf,
    extract_nome_banco,
    format_date_br,
    parse_date,
    parse_numero,
    parse_valor_brl,
)

logger = logging.getLogger(__name__)

_RE_DATA_BR = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_RE_CARACTERES_HEADER = re.compile(r"[^\x20-\x7EÀ-ɏ]")


def _cell(row: list, idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _cell_str(row: list, idx: Optional[int]) -> str:
    val = _cell(row, idx)
    if val is None:
        return ""
    if isinstance(val, float) and val.is_integer():
        # Números de documento lidos como float pelo pandas (123.0)
        return str(int(val))
    return str(val)


# ============================================================
# EXTRATO BANCO (Sicredi)
# ============================================================


def _iter_linhas_banco(rows: list[list], linha_inicial: int) -> Iterator[LinhaParseada]:
    for i in range(linha_inicial, len(rows)):
        row = rows[i]
        if not row or not row[0]:
            continue

        raw_data = row[0]
        data_str = raw_data.strip() if isinstance(raw_data, str) else ""

        if data_str and any(fim in data_str for fim in FIM_LANCAMENTOS_BANCO):
            break
        if len(row) < 2 or not row[1]:
            continue

        if isinstance(raw_data, (date, datetime)):
            data = parse_date(raw_data)
        elif _RE_DATA_BR.match(data_str):
            data = parse_date(data_str)
        else:
            yield LinhaIgnorada("banco", i, f"data inválida: {raw_data!r}")
            continue

        if data is None:
            yield LinhaIgnorada("banco", i, f"data inválida: {raw_data!r}")
            continue

        valor = parse_numero(_cell(row, 3))
        if valor is None:
            yield LinhaIgnorada("banco", i, f"valor inválido: {_cell(row, 3)!r}")
            continue

        desc = str(row[1]).strip()
        yield LancamentoBanco(
            idx=i,
            data=data,
            data_str=format_date_br(data),
            descricao=desc,
            documento=_cell_str(row, 2).strip(),
            valor=valor,
            saldo=parse_numero(_cell(row, 4)),
            cnpj_cpf=extract_cnpj_cpf(desc),
            nome=extract_nome_banco(desc),
            tipo=classify_banco(desc),
        )


def parse_banco(rows: list[list], linha_inicial: int = LINHA_INICIAL_BANCO) -> ResultadoParse:
    """Parse do extrato Sicredi.

    A linha anterior a `linha_inicial` traz o saldo anterior na coluna 4. A leitura
    para na primeira linha de rodapé ("Saldo", "Lançamentos Futuros"...).
    """
    saldo_anterior: Optional[float] = None
    if 0 < linha_inicial <= len(rows):
        linha_saldo = rows[linha_inicial - 1] or []
        saldo_anterior = parse_numero(_cell(linha_saldo, COLUNA_SALDO_BANCO)) or None

    lancamentos: list[LancamentoBanco] = []
    ignoradas: list[LinhaIgnorada] = []
    for item in _iter_linhas_banco(rows, linha_inicial):
        if isinstance(item, LinhaIgnorada):
            logger.debug("Banco: linha %d ignorada (%s)", item.linha, item.motivo)
            ignoradas.append(item)
        else:
            lancamentos.append(item)

    logger.info("Banco: %d lançamentos, %d linhas ignoradas, saldo anterior=%s",
                len(lancamentos), len(ignoradas), saldo_anterior)
    return ResultadoParse(lancamentos=lancamentos, saldo_anterior=saldo_anterior, ignoradas=ignoradas)


# ============================================================
# OMIE
# ============================================================


def _mapear_coluna(nome_coluna: str) -> Optional[str]:
    for campo, iguais, contem in MAPA_COLUNAS_OMIE:
        if nome_coluna in iguais or any(c in nome_coluna for c in contem):
            return campo
    return None


def detectar_header_omie(rows: list[list], max_linhas: int = 6) -> tuple[int, dict[str, int]]:
    """Localiza a linha de cabeçalho do relatório Omie e mapeia campo → coluna.

    Sem cabeçalho reconhecível, usa o layout padrão do export (cabeçalho na linha 2).
    """
    for i in range(min(max_linhas, len(rows))):
        row = rows[i]
        if not row:
            continue
        row_str = "|".join(str(c or "").upper() for c in row)
        if not ("SITUAÇ" in row_str or "SITUACAO" in row_str or ("CLIENTE" in row_str and "DATA" in row_str)):
            continue

        col_map: dict[str, int] = {}
        for j, cell in enumerate(row):
            nome = _RE_CARACTERES_HEADER.sub("", str(cell or "").upper().strip())
            if not nome:
                continue
            campo = _mapear_coluna(nome)
            if campo is not None:
                col_map[campo] = j

        logger.info("Omie: header detectado na linha %d, mapeamento=%s", i, col_map)
        if "razao_social" not in col_map:
            logger.warning("Omie: coluna Razão Social não encontrada no header")
        if "nota_fiscal" not in col_map:
            logger.warning("Omie: coluna Nota Fiscal não encontrada no header")
        if col_map:
            return i, col_map

    logger.info("Omie: header não encontrado, usando layout padrão")
    return 2, dict(COLUNAS_OMIE_PADRAO)


def _iter_linhas_omie(
    rows: list[list], header_idx: int, col_map: dict[str, int], saldo: list[Optional[float]],
) -> Iterator[LinhaParseada]:
    padrao_cartao = re.compile(PADRAO_DOC_CARTAO_IMPORTADO)

    for i in range(header_idx + 1, len(rows)):
        row = rows[i]
        if not row:
            continue

        def col(key: str) -> str:
            return _cell_str(row, col_map.get(key))

        cliente = col("cliente")
        cliente_upper = cliente.upper()
        if "SALDO" in cliente_upper:
            if ("ANTERIOR" in cliente_upper or "INICIAL" in cliente_upper) and saldo[0] is None:
                saldo[0] = parse_numero(_cell(row, col_map.get("saldo"))) or None
            continue

        situacao = " ".join(col("situacao").split())
        if not situacao:
            continue

        data = parse_date(_cell(row, col_map.get("data")))
        if data is None:
            yield LinhaIgnorada("omie", i, f"data inválida: {_cell(row, col_map.get('data'))!r}")
            continue

        valor = parse_numero(_cell(row, col_map.get("valor")))
        if valor is None:
            yield LinhaIgnorada("omie", i, f"valor inválido: {_cell(row, col_map.get('valor'))!r}")
            continue

        documento = col("documento").strip()
        nota_fiscal = col("nota_fiscal").strip()
        if padrao_cartao.match(documento.upper()) or padrao_cartao.match(nota_fiscal.upper()):
            yield LinhaIgnorada("omie", i, f"transação de cartão já importada ({documento or nota_fiscal})")
            continue

        yield LancamentoOmie(
            idx=i,
            situacao=situacao,
            data=data,
            data_str=format_date_br(data),
            cliente_fornecedor=cliente.strip(),
            conta_corrente=col("conta").strip(),
            categoria=col("categoria").strip(),
            valor=valor,
            tipo_doc=col("tipo_doc").strip(),
            documento=documento,
            nota_fiscal=nota_fiscal,
            parcela=col("parcela").strip(),
            origem=col("origem").strip(),
            projeto=col("projeto").strip(),
            razao_social=col("razao_social").strip(),
            cnpj_cpf=col("cnpj_cpf").strip(),
            observacoes=col("observacoes").strip(),
        )


def parse_omie(rows: list[list]) -> ResultadoParse:
    """Parse da movimentação financeira exportada do Omie.

    Valor com sinal (negativo = pagamento). Linhas de saldo alimentam apenas o
    saldo anterior; linhas sem situação são totais/subtotais e são puladas.
    Transações de cartão geradas por importação anterior (CARTAO-AAAA-NNN) não
    participam da conciliação.
    """
    header_idx, col_map = detectar_header_omie(rows)

    saldo: list[Optional[float]] = [None]
    lancamentos: list[LancamentoOmie] = []
    ignoradas: list[LinhaIgnorada] = []
    for item in _iter_linhas_omie(rows, header_idx, col_map, saldo):
        if isinstance(item, LinhaIgnorada):
            logger.debug("Omie: linha %d ignorada (%s)", item.linha, item.motivo)
            ignoradas.append(item)
        else:
            lancamentos.append(item)

    com_razao = sum(1 for o in lancamentos if len(o.razao_social) > 3)
    com_nf = sum(1 for o in lancamentos if o.nota_fiscal)
    logger.info("Omie: %d lançamentos (%d com razão social, %d com NF), %d linhas ignoradas",
                len(lancamentos), com_razao, com_nf, len(ignoradas))
    return ResultadoParse(lancamentos=lancamentos, saldo_anterior=saldo[0], ignoradas=ignoradas)


# ============================================================
# FATURA CARTÃO (Sicredi CSV)
# ============================================================


def _parse_info_cartao(lines: list[str]) -> CartaoInfo:
    campos: dict[str, Any] = {}
    for line in lines[:LINHAS_INFO_CARTAO]:
        parts = line.split(";")
        label = parts[0].strip() if parts else ""
        val = parts[1].strip() if len(parts) > 1 else ""
        if not label:
            continue
        for rotulo, campo in ROTULOS_INFO_CARTAO:
            if rotulo in label:
                campos.setdefault(campo, val)
                break

    return CartaoInfo(
        vencimento=parse_date(campos.get("vencimento")),
        valor_total=parse_valor_brl(campos.get("valor_total", "")),
        situacao=campos.get("situacao", ""),
        despesas_brasil=parse_valor_brl(campos.get("despesas_brasil", "")),
        despesas_exterior=parse_valor_brl(campos.get("despesas_exterior", "")),
        pagamentos=parse_valor_brl(campos.get("pagamentos", "")),
    )


def parse_cartao_from_text(text: str) -> ResultadoParseCartao:
    """Parse da fatura do cartão a partir do CSV (separador ';') já decodificado.

    As primeiras linhas trazem o resumo da fatura; linhas "Cartão;XXXX...;TITULAR"
    abrem o bloco de um cartão; linhas iniciadas por dd/mm/aaaa são transações.
    """
    lines = text.splitlines()
    info = _parse_info_cartao(lines)

    transacoes: list[TransacaoCartao] = []
    ignoradas: list[LinhaIgnorada] = []
    titular = ""
    cartao = ""

    for i, line in enumerate(lines):
        if not line.strip():
            continue
        parts = line.split(";")

        if len(parts) >= 3 and "Cart" in parts[0] and "XXXX" in parts[1]:
            cartao = parts[1].strip()
            titular = parts[2].strip()
            continue

        data_str = parts[0].strip()
        if not _RE_DATA_BR.match(data_str):
            continue

        descricao = parts[1].strip() if len(parts) > 1 else ""
        parcela = parts[2].strip() if len(parts) > 2 else ""
        valor_str = parts[3].strip() if len(parts) > 3 else ""

        data = parse_date(data_str)
        if data is None:
            ignoradas.append(LinhaIgnorada("cartao", i, f"data inválida: {data_str!r}"))
            continue

        valor = parse_valor_brl(valor_str)
        transacoes.append(TransacaoCartao(
            idx=len(transacoes),
            data=data,
            data_str=data_str,
            descricao=descricao,
            parcela=parcela,
            valor=valor,
            titular=titular,
            cartao=cartao,
            is_pagamento_fatura=MARCADOR_PAGAMENTO_FATURA in descricao,
            is_estorno=valor < 0 and MARCADOR_PAGAMENTO_FATURA_CURTO not in descricao,
        ))

    logger.info("Cartão: %d transações, vencimento=%s, total=%.2f",
                len(transacoes), info.vencimento, info.valor_total)
    return ResultadoParseCartao(transacoes=transacoes, info=info, ignoradas=ignoradas)


# ============================================================
# DECODIFICAÇÃO DE ARQUIVOS
# ============================================================


def workbook_to_rows(content: bytes) -> list[list]:
    """Primeira planilha do arquivo como lista de linhas (células vazias → None)."""
    df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()


def csv_to_text(content: bytes) -> str:
    """Decodifica CSV exportado pelo banco (utf-8, com ou sem BOM; senão latin-1)."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("CSV não é utf-8, decodificando como latin-1")
        return content.decode("latin-1")


def _detect_sep(text: str) -> str:
    return ";" if text.count(";") > text.count(",") else ","


def csv_to_rows(content: bytes) -> list[list]:
    """Extrato ou movimentação exportados como CSV, no mesmo formato de workbook_to_rows.

    Linhas em branco e linhas curtas são mantidas, para que os índices batam com
    os da planilha (linha inicial do extrato, cabeçalho do Omie).
    """
    text = csv_to_text(content)
    lines = text.splitlines()
    if not any(line.strip() for line in lines):
        return []

    sep = _detect_sep(text)
    n_cols = max(line.count(sep) for line in lines) + 1
    df = pd.read_csv(
        io.StringIO(text),
        sep=sep,
        header=None,
        names=list(range(n_cols)),
        dtype=str,
        keep_default_na=False,
        na_values=[""],
        skip_blank_lines=False,
    )
    df = df.astype(object).where(pd.notna(df), None)
    logger.debug("CSV: separador %r, %d linhas x %d colunas", sep, len(df), n_cols)
    return df.values.tolist()


def _cell_to_csv(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, (date, datetime)):
        return format_date_br(parse_date(val))
    if isinstance(val, float):
        return f"{val:.2f}".replace(".", ",")
    return str(val)


def rows_to_text(rows: list[list]) -> str:
    """Fatura recebida como planilha: remonta o texto ';' esperado por parse_cartao_from_text."""
    return "\n".join(";".join(_cell_to_csv(c) for c in (r or [])) for r in rows)

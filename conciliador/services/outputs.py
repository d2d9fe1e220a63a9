"""
Saídas do resultado da conciliação.

  - resultado_to_dict            — projeção JSON (datas dd/mm/aaaa)
  - gerar_xlsx_divergencias      — planilha com uma linha por divergência
  - gerar_xlsx_importacao_cartao — planilha de importação de contas a pagar no Omie
                                   com as compras do cartão ainda não lançadas
"""
import dataclasses
import logging
from datetime import date, datetime
from typing import IO, Any, Optional, Union

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font

from conciliador.config import settings
from conciliador.models.lancamentos import (
    Divergencia,
    EstadoCartao,
    EstadoMatch,
    ResultadoConciliacao,
)
from conciliador.services.normalizacao import format_date_br

logger = logging.getLogger(__name__)

Destino = Union[str, IO[bytes]]

COLUNAS_DIVERGENCIAS = [
    "#", "Tipo", "Descrição Tipo", "Fonte", "Data", "Valor (R$)",
    "Descrição/Fornecedor", "CNPJ/CPF", "Situação", "Origem",
    "Valor Banco", "Valor Omie", "Diferença", "Dias Diferença",
    "Titular Cartão", "Categoria Sugerida", "NF", "Ação Sugerida", "Observação",
]

COLUNAS_VALOR_DIVERGENCIAS = ("Valor (R$)", "Valor Banco", "Valor Omie", "Diferença")
FORMATO_CONTABIL = "[Blue]#,##0.00;[Red](#,##0.00);0.00"

COLUNAS_IMPORTACAO_OMIE = [
    "", "Código de Integração",
    "Fornecedor * (Razão Social, Nome Fantasia, CNPJ ou CPF)",
    "Categoria *", "Conta Corrente *", "Valor da Conta *",
    "Vendedor", "Projeto", "Data de Emissão",
    "Data de Registro *", "Data de Vencimento *",
    "Data de Previsão", "Data do Pagamento", "Valor do Pagamento",
    "Juros", "Multa", "Desconto", "Data de Conciliação", "Observações",
]

FORNECEDOR_CARTAO = "CARTAO DE CREDITO"


# ============================================================
# JSON
# ============================================================


def _json_safe(val: Any) -> Any:
    if isinstance(val, (date, datetime)):
        return format_date_br(val)
    if isinstance(val, dict):
        return {k: _json_safe(v) for k, v in val.items()}
    if isinstance(val, (list, tuple)):
        return [_json_safe(v) for v in val]
    return val


def _registro(obj: Any, estado: Optional[Union[EstadoMatch, EstadoCartao]] = None) -> dict:
    d = dataclasses.asdict(obj)
    if estado is not None:
        d["match"] = dataclasses.asdict(estado)
    return _json_safe(d)


def _divergencia_dict(d: Divergencia) -> dict:
    out = {
        f.name: getattr(d, f.name)
        for f in dataclasses.fields(d)
        if f.name not in ("banco", "omie", "cartao")
    }
    out["banco_idx"] = d.banco.idx if d.banco else None
    out["omie_idx"] = d.omie.idx if d.omie else None
    out["cartao_idx"] = d.cartao.idx if d.cartao else None
    return _json_safe(out)


def resultado_to_dict(resultado: ResultadoConciliacao) -> dict:
    """Resultado completo em estruturas JSON (registros com o estado de match embutido)."""
    r = resultado
    return {
        "mes": r.mes_label,
        "ano": r.ano_label,
        "resumo": {
            "total_banco": len(r.banco),
            "total_omie": len(r.omie),
            "total_omie_cartao": len(r.omie_cartao),
            "total_cartao": len(r.cartao_transacoes),
            "total_conciliados": r.total_conciliados,
            "total_divergencias": r.total_divergencias,
            "contas_atraso": r.contas_atraso,
            "cartao_importaveis": r.cartao_importaveis,
            "pct_conciliados": r.pct_conciliados,
            "saldo_banco": r.saldo_banco,
            "saldo_omie": r.saldo_omie,
            "camada_counts": dict(r.camada_counts),
            "div_counts": dict(r.div_counts),
            "conta_corrente_selecionada": r.conta_corrente_selecionada,
            "contas_excluidas": list(r.contas_excluidas),
        },
        "matches": [
            {"camada": m.camada, "tipo": m.tipo, "banco_idx": m.banco.idx, "omie_idx": m.omie.idx}
            for m in r.matches
        ],
        "divergencias": [_divergencia_dict(d) for d in r.divergencias],
        "banco": [_registro(b, r.estado_banco.get(b.idx, EstadoMatch())) for b in r.banco],
        "omie": [_registro(o, r.estado_omie.get(o.idx, EstadoMatch())) for o in r.omie],
        "omie_cartao": [_registro(o, r.estado_omie.get(o.idx, EstadoMatch())) for o in r.omie_cartao],
        "cartao": {
            "info": _registro(r.cartao_info),
            "transacoes": [
                _registro(t, r.estado_cartao.get(t.idx, EstadoCartao())) for t in r.cartao_transacoes
            ],
        },
        "avisos": [_registro(a) for a in r.avisos],
    }


def nome_arquivo(resultado: ResultadoConciliacao, prefixo: str) -> str:
    """divergencias_mar2024.xlsx, importacao_cartao_mar2024.xlsx..."""
    sufixo = f"{(resultado.mes_label or 'mes')[:3].lower()}{resultado.ano_label}"
    return f"{prefixo}_{sufixo}.xlsx"


# ============================================================
# XLSX
# ============================================================


def _ajustar_larguras(ws, max_width: int = 50) -> None:
    for col in ws.columns:
        max_length = 0
        column = col[0].column_letter
        for cell in col:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[column].width = min(max_length + 2, max_width)


def gerar_xlsx_divergencias(resultado: ResultadoConciliacao, output: Destino) -> bool:
    """Gera a planilha de divergências (uma linha por divergência, na ordem do resultado)."""
    if not resultado.divergencias:
        return False

    rows = []
    for i, d in enumerate(resultado.divergencias, 1):
        rows.append({
            "#": i,
            "Tipo": d.tipo,
            "Descrição Tipo": d.tipo_nome,
            "Fonte": d.fonte,
            "Data": format_date_br(d.data),
            "Valor (R$)": d.valor,
            "Descrição/Fornecedor": d.descricao,
            "CNPJ/CPF": d.cnpj_cpf,
            "Situação": d.situacao,
            "Origem": d.origem,
            "Valor Banco": d.valor_banco,
            "Valor Omie": d.valor_omie,
            "Diferença": d.diferenca,
            "Dias Diferença": d.dias_diferenca,
            "Titular Cartão": d.titular,
            "Categoria Sugerida": d.categoria_sugerida,
            "NF": d.nf,
            "Ação Sugerida": d.acao,
            "Observação": d.obs,
        })

    df = pd.DataFrame(rows, columns=COLUNAS_DIVERGENCIAS)
    df = df.astype(object).where(pd.notna(df), None)

    wb = Workbook()
    ws = wb.active
    ws.title = "Divergências"

    header_font = Font(bold=True)
    for col_idx, col_name in enumerate(COLUNAS_DIVERGENCIAS, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = header_font

    colunas_valor = {COLUNAS_DIVERGENCIAS.index(c) + 1 for c in COLUNAS_VALOR_DIVERGENCIAS}
    for row_idx, row_data in enumerate(df.values.tolist(), 2):
        for col_idx, value in enumerate(row_data, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            if col_idx in colunas_valor and isinstance(value, (int, float)):
                cell.number_format = FORMATO_CONTABIL

    ws.auto_filter.ref = ws.dimensions
    ws.freeze_panes = "A2"
    _ajustar_larguras(ws)

    wb.save(output)
    logger.info("XLSX divergências: %d linhas", len(rows))
    return True


def gerar_xlsx_importacao_cartao(resultado: ResultadoConciliacao, output: Destino) -> bool:
    """Gera a planilha de importação de contas a pagar (layout Omie) para a fatura.

    Entram só as compras sem NF correspondente; pagamentos de fatura e estornos
    ficam de fora. Sem nenhuma linha importável, não gera nada e retorna False.
    """
    importaveis = [
        t for t in resultado.cartao_transacoes
        if not t.is_pagamento_fatura
        and not t.is_estorno
        and not resultado.estado_cartao.get(t.idx, EstadoCartao()).matched_nf
    ]
    if not importaveis:
        return False

    vencimento = format_date_br(resultado.cartao_info.vencimento)
    conta_corrente = settings.conta_corrente_cartao

    rows = []
    for t in importaveis:
        categoria = resultado.estado_cartao.get(t.idx, EstadoCartao()).categoria_sugerida or settings.categoria_padrao
        obs = " | ".join(p for p in (t.titular, t.descricao.strip(), t.parcela) if p)
        valor = round(abs(t.valor), 2)
        rows.append([
            "", "", FORNECEDOR_CARTAO, categoria, conta_corrente,
            valor, "", "", "",
            t.data_str, vencimento, "", vencimento,
            valor, 0, 0, 0, vencimento, obs,
        ])

    df = pd.DataFrame(rows, columns=range(len(COLUNAS_IMPORTACAO_OMIE)))

    wb = Workbook()
    ws = wb.active
    ws.title = "Omie_Contas_Pagar"

    title_font = Font(bold=True, size=12)
    ws.cell(row=1, column=2, value="IMPORTAÇÃO DE CONTAS A PAGAR - OMIE").font = title_font
    ws.cell(row=2, column=2, value=f"Fatura Cartão - Venc. {vencimento}")
    ws.cell(row=3, column=2, value=f"Gerado em: {format_date_br(date.today())}")

    header_font = Font(bold=True)
    for col_idx, col_name in enumerate(COLUNAS_IMPORTACAO_OMIE, 1):
        cell = ws.cell(row=5, column=col_idx, value=col_name or None)
        cell.font = header_font

    for row_idx, row_data in enumerate(df.values.tolist(), 6):
        for col_idx, value in enumerate(row_data, 1):
            ws.cell(row=row_idx, column=col_idx, value=value if value != "" else None)

    _ajustar_larguras(ws)

    wb.save(output)
    logger.info("XLSX importação cartão: %d transações (venc. %s)", len(rows), vencimento)
    return True

"""
Dados de exemplo para os testes da conciliação.

Fábricas de registros (banco, Omie, cartão) e geradores de arquivos em memória
(extrato XLSX, movimentação Omie XLSX, fatura CSV) no layout dos exports reais.
"""
import io
import sys
from datetime import date
from pathlib import Path

from openpyxl import Workbook

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from conciliador.models.lancamentos import LancamentoBanco, LancamentoOmie, TransacaoCartao  # noqa: E402
from conciliador.services.normalizacao import (  # noqa: E402
    classify_banco,
    extract_cnpj_cpf,
    extract_nome_banco,
    format_date_br,
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ── Registros ─────────────────────────────────────────────────────────────────


def banco(idx: int, data: date, valor: float, descricao: str = "PAGAMENTO PIX JOAO SILVA",
          documento: str = "", saldo=None) -> LancamentoBanco:
    return LancamentoBanco(
        idx=idx,
        data=data,
        data_str=format_date_br(data),
        descricao=descricao,
        documento=documento,
        valor=valor,
        saldo=saldo,
        cnpj_cpf=extract_cnpj_cpf(descricao),
        nome=extract_nome_banco(descricao),
        tipo=classify_banco(descricao),
    )


def omie(idx: int, data: date, valor: float, cliente: str = "JOAO SILVA", conta: str = "SICREDI",
         situacao: str = "Conciliado", **kwargs) -> LancamentoOmie:
    return LancamentoOmie(
        idx=idx,
        situacao=situacao,
        data=data,
        data_str=format_date_br(data),
        cliente_fornecedor=cliente,
        conta_corrente=conta,
        categoria=kwargs.pop("categoria", "SERVICOS DE TERCEIROS"),
        valor=valor,
        **kwargs,
    )


def transacao(idx: int, data: date, valor: float, descricao: str, parcela: str = "",
              titular: str = "JOAO SILVA") -> TransacaoCartao:
    return TransacaoCartao(
        idx=idx,
        data=data,
        data_str=format_date_br(data),
        descricao=descricao,
        parcela=parcela,
        valor=valor,
        titular=titular,
        cartao="XXXX XXXX XXXX 1234",
        is_pagamento_fatura="Pag Fat Deb Cc" in descricao,
        is_estorno=valor < 0 and "Pag Fat" not in descricao,
    )


# ── Arquivos ──────────────────────────────────────────────────────────────────


def _xlsx_bytes(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def linhas_extrato() -> list[list]:
    """Extrato Sicredi: 9 linhas de cabeçalho, saldo anterior na linha 9, lançamentos a partir da 10."""
    cabecalho = [
        ["Cooperativa: 0101"],
        ["Conta: 12345-6"],
        ["Associado: CONSTRUTORA EXEMPLO LTDA"],
        ["Extrato de conta corrente"],
        ["Período: 01/03/2024 a 31/03/2024"],
        ["Emitido em 01/04/2024"],
        ["Sicredi"],
        ["Lançamentos"],
        ["Data", "Descrição", "Documento", "Valor (R$)", "Saldo (R$)"],
        ["Saldo Anterior", None, None, None, 1000.0],
    ]
    lancamentos = [
        ["10/03/2024", "PAGAMENTO PIX JOAO SILVA", "PIX001", -1500.0, -500.0],
        ["15/03/2024", "DEB.CTA.FATURA", "FAT0324", -1000.0, -1500.0],
        ["20/03/2024", "LIQUIDACAO BOLETO FORNECEDOR XYZ", "BOL77", -500.0, -2000.0],
        ["31/02/2024", "PAGAMENTO PIX DATA INVALIDA", "PIX002", -10.0, -2010.0],
        ["Saldo da conta corrente", None, None, None, -2000.0],
        ["15/04/2024", "PAGAMENTO PIX LANCAMENTO FUTURO", "PIX003", -99.0, None],
    ]
    return cabecalho + lancamentos


def extrato_xlsx() -> bytes:
    return _xlsx_bytes(linhas_extrato())


HEADER_OMIE = [
    "Situação", "Data", "Cliente ou Fornecedor (Nome Fantasia)", "Conta Corrente", "Categoria",
    "Valor (R$)", "Saldo (R$)", "Tipo de Documento", "Documento", "Nota Fiscal", "Parcela",
    "Origem", "Projeto", "Cliente ou Fornecedor (Razão Social)", "CNPJ/CPF", "Observações",
]


def linhas_omie() -> list[list]:
    """Movimentação Omie: título, período, cabeçalho na linha 2."""
    return [
        ["Movimentação Financeira"],
        ["Período: 01/03/2024 a 31/03/2024"],
        HEADER_OMIE,
        [None, None, "SALDO ANTERIOR", None, None, None, 5000.0],
        ["Conciliado", "10/03/2024", "JOAO SILVA", "SICREDI", "SERVICOS DE TERCEIROS", -1500.0, 3500.0,
         "PIX", "", "", "1/1", "Conta a Pagar", "OBRA 01", "JOAO SILVA", "", ""],
        ["Atrasado", "05/03/2024", "CLIENTE ABC", "SICREDI", "RECEITA DE SERVICOS", 2000.0, 5500.0,
         "BOLETO", "", "NF 321", "1/2", "Conta a Receber", "OBRA 02", "CLIENTE ABC LTDA", "", ""],
        ["Atrasado", "sem data", "FORNECEDOR SEM DATA", "SICREDI", "MATERIAIS", -50.0, None,
         "", "", "", "", "Conta a Pagar", "", "", "", ""],
        ["A Pagar", "07/03/2024", "POSTO JA IMPORTADO", "CARTAO DE CREDITO SICREDI", "COMBUSTIVEIS", -80.0,
         None, "", "CARTAO-2024-001", "", "", "Conta a Pagar", "", "", "", ""],
        ["A Pagar", "07/03/2024", "RESTAURANTE SABOR", "CARTAO DE CREDITO SICREDI", "ALIMENTACAO (OPERACAO)",
         -84.5, None, "NFC-e", "", "9876", "1/1", "Conta a Pagar", "", "RESTAURANTE SABOR LTDA", "", ""],
        ["Conciliado", "15/03/2024", "CARTAO DE CREDITO", "CARTAO DE CREDITO SICREDI", "TRANSFERENCIA",
         -1000.0, None, "", "", "", "", "Saída de Transferência", "", "", "", ""],
        [None, None, "Total do período", None, None, -584.5, None],
    ]


def omie_xlsx() -> bytes:
    return _xlsx_bytes(linhas_omie())


def _csv_celula(val) -> str:
    if val is None:
        return ""
    if isinstance(val, float):
        return f"{val:.2f}".replace(".", ",")
    return str(val)


def _csv_bytes(rows: list[list], sep: str = ";") -> bytes:
    """Export CSV como o do banco/Omie: latin-1, decimais com vírgula."""
    return "\n".join(sep.join(_csv_celula(c) for c in row) for row in rows).encode("latin-1")


def extrato_csv() -> bytes:
    return _csv_bytes(linhas_extrato())


def omie_csv() -> bytes:
    return _csv_bytes(linhas_omie())


FATURA_CSV = "\n".join([
    "Data de Vencimento;15/04/2024",
    "Valor Total;R$ 1.204,50",
    "Situação;Aberta",
    "Despesas / Debitos no Brasil;R$ 334,50",
    "Despesas / Debitos no exterior;R$ 0,00",
    "Pagamentos / Creditos;-R$ 1.000,00",
    ";",
    "Cartão;XXXX XXXX XXXX 1234;JOAO SILVA",
    "Data;Descrição;Parcela;Valor",
    "05/03/2024;POSTO SHELL CENTRO;;R$ 250,00",
    "07/03/2024;RESTAURANTE SABOR;;R$ 84,50",
    "10/03/2024;Pag Fat Deb Cc;;-R$ 1.000,00",
    "12/03/2024;ESTORNO LOJA X;;-R$ 30,00",
])


def fatura_csv(encoding: str = "latin-1") -> bytes:
    return FATURA_CSV.encode(encoding)


def fatura_xlsx() -> bytes:
    """Mesma fatura exportada como planilha (uma célula por campo do CSV)."""
    return _xlsx_bytes([line.split(";") for line in FATURA_CSV.splitlines() if line.strip(";")])


class UploadFalso:
    """Objeto com a interface usada do UploadFile (read assíncrono + filename)."""

    def __init__(self, content: bytes, filename: str):
        self._content = content
        self.filename = filename

    async def read(self) -> bytes:
        return self._content

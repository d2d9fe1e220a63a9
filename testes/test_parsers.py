#!/usr/bin/env python3
"""
Testes de conciliador/services/parsers.py

Usage:
    python3 testes/test_parsers.py
    pytest testes/test_parsers.py

What it tests:
1. parse_banco: saldo anterior, fim dos lançamentos, linhas ignoradas (data/valor inválidos)
2. parse_omie: detecção do cabeçalho, layout padrão, saldo anterior, linhas de total,
   transações de cartão já importadas (CARTAO-AAAA-NNN)
3. parse_cartao_from_text: resumo da fatura, titular/cartão, pagamento de fatura e estorno
4. Decodificação: workbook_to_rows, csv_to_text (utf-8 / latin-1), rows_to_text
"""
import sys
import logging
from datetime import date, datetime
from pathlib import Path

# ── Project setup ─────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from conciliador.services.parsers import (  # noqa: E402
    csv_to_rows,
    csv_to_text,
    detectar_header_omie,
    parse_banco,
    parse_cartao_from_text,
    parse_omie,
    rows_to_text,
    workbook_to_rows,
)
from dados_conciliacao import (  # noqa: E402
    FATURA_CSV,
    extrato_csv,
    extrato_xlsx,
    fatura_csv,
    linhas_extrato,
    linhas_omie,
)

# ── ANSI colours ──────────────────────────────────────────────────────────────
GREEN  = "\033[92m"
RED    = "\033[91m"
YELLOW = "\033[93m"
RESET  = "\033[0m"

# ── Result tracking ────────────────────────────────────────────────────────────
_results: list[dict] = []


def _pass(name: str, detail: str = "") -> None:
    _results.append({"name": name, "status": "PASS", "detail": detail})
    print(f"  {GREEN}PASS{RESET}  {name}" + (f" — {detail}" if detail else ""))


def _fail(name: str, detail: str = "") -> None:
    _results.append({"name": name, "status": "FAIL", "detail": detail})
    print(f"  {RED}FAIL{RESET}  {name}" + (f" — {detail}" if detail else ""))
    raise AssertionError(f"{name}: {detail}")


def _run(test) -> None:
    try:
        test()
    except AssertionError:
        pass


# ── 1. Extrato bancário ───────────────────────────────────────────────────────


def test_parse_banco_extrato() -> None:
    name = "parse_banco_extrato"

    result = parse_banco(linhas_extrato())
    failures = []

    if result.saldo_anterior != 1000.0:
        failures.append(f"saldo_anterior={result.saldo_anterior}")

    descricoes = [b.descricao for b in result.lancamentos]
    if descricoes != ["PAGAMENTO PIX JOAO SILVA", "DEB.CTA.FATURA", "LIQUIDACAO BOLETO FORNECEDOR XYZ"]:
        failures.append(f"lançamentos={descricoes}")

    if result.lancamentos:
        pix = result.lancamentos[0]
        if (pix.idx, pix.data, pix.valor, pix.saldo) != (10, date(2024, 3, 10), -1500.0, -500.0):
            failures.append(f"pix={pix}")
        if (pix.tipo, pix.nome, pix.documento, pix.data_str) != ("PIX_ENVIADO", "JOAO SILVA", "PIX001", "10/03/2024"):
            failures.append(f"pix campos derivados={pix.tipo}/{pix.nome}/{pix.documento}/{pix.data_str}")
    if len(result.lancamentos) > 1 and result.lancamentos[1].tipo != "FATURA_CARTAO":
        failures.append(f"fatura tipo={result.lancamentos[1].tipo}")

    # 31/02/2024 é descartada; a linha depois do rodapé nem é lida
    if [(i.fonte, i.linha) for i in result.ignoradas] != [("banco", 13)]:
        failures.append(f"ignoradas={result.ignoradas}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, f"{len(result.lancamentos)} lançamentos, 1 ignorada, saldo 1000.00")


def test_parse_banco_linhas_invalidas() -> None:
    """Data/valor inválidos viram LinhaIgnorada; linhas vazias somem sem aviso."""
    name = "parse_banco_linhas_invalidas"

    rows = [["cabecalho"]] * 9 + [["Saldo Anterior", None, None, None, "1.234,56"]]
    rows += [
        ["01/03/2024", "TARIFA CESTA", "", -45.9, 100.0],
        ["02/03/2024", "PAGAMENTO PIX X", "", "abc", None],
        ["ontem", "PAGAMENTO PIX Y", "", -10.0, None],
        [None, None, None, None, None],
        ["03/03/2024", None, None, None, None],
        [datetime(2024, 3, 4), "RECEBIMENTO PIX CLIENTE", 123.0, "2.500,00", None],
        ["Lançamentos Futuros", None, None, None, None],
        ["05/03/2024", "PAGAMENTO PIX DEPOIS DO RODAPE", "", -1.0, None],
    ]
    result = parse_banco(rows)
    failures = []

    if result.saldo_anterior != 1234.56:
        failures.append(f"saldo_anterior={result.saldo_anterior}")

    got = [(b.idx, b.data, b.valor, b.documento) for b in result.lancamentos]
    expected = [(10, date(2024, 3, 1), -45.9, ""), (15, date(2024, 3, 4), 2500.0, "123")]
    if got != expected:
        failures.append(f"lançamentos={got}")

    motivos = {i.linha: i.motivo for i in result.ignoradas}
    if sorted(motivos) != [11, 12]:
        failures.append(f"ignoradas={motivos}")
    elif "valor" not in motivos[11] or "data" not in motivos[12]:
        failures.append(f"motivos={motivos}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "2 ok, 2 ignoradas com motivo, vazias sem aviso, para no rodapé")


def test_parse_banco_vazio() -> None:
    name = "parse_banco_vazio"

    result = parse_banco([])
    if result.lancamentos or result.ignoradas or result.saldo_anterior is not None:
        _fail(name, f"got {result}")
    else:
        _pass(name, "empty rows → empty result")


# ── 2. Omie ───────────────────────────────────────────────────────────────────


def test_parse_omie_header_detectado() -> None:
    name = "parse_omie_header_detectado"

    rows = linhas_omie()
    header_idx, col_map = detectar_header_omie(rows)
    failures = []

    if header_idx != 2:
        failures.append(f"header_idx={header_idx}")
    expected_cols = {
        "situacao": 0, "data": 1, "cliente": 2, "conta": 3, "categoria": 4, "valor": 5, "saldo": 6,
        "tipo_doc": 7, "documento": 8, "nota_fiscal": 9, "parcela": 10, "origem": 11, "projeto": 12,
        "razao_social": 13, "cnpj_cpf": 14, "observacoes": 15,
    }
    if col_map != expected_cols:
        failures.append(f"col_map={col_map}")

    result = parse_omie(rows)
    if result.saldo_anterior != 5000.0:
        failures.append(f"saldo_anterior={result.saldo_anterior}")

    clientes = [o.cliente_fornecedor for o in result.lancamentos]
    if clientes != ["JOAO SILVA", "CLIENTE ABC", "RESTAURANTE SABOR", "CARTAO DE CREDITO"]:
        failures.append(f"clientes={clientes}")

    abc = next((o for o in result.lancamentos if o.cliente_fornecedor == "CLIENTE ABC"), None)
    if abc is None or (abc.idx, abc.situacao, abc.valor, abc.origem, abc.razao_social, abc.nota_fiscal) != (
        5, "Atrasado", 2000.0, "Conta a Receber", "CLIENTE ABC LTDA", "NF 321"
    ):
        failures.append(f"cliente abc={abc}")

    motivos = {i.linha: i.motivo for i in result.ignoradas}
    if sorted(motivos) != [6, 7]:
        failures.append(f"ignoradas={motivos}")
    elif "CARTAO-2024-001" not in motivos[7]:
        failures.append(f"motivo cartão={motivos[7]}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "header na linha 2, 4 lançamentos, saldo 5000.00, 2 ignoradas")


def test_parse_omie_layout_padrao() -> None:
    """Sem cabeçalho reconhecível, usa as posições padrão do export (dados a partir da linha 3)."""
    name = "parse_omie_layout_padrao"

    def linha(situacao, data, cliente, conta, valor, documento=""):
        row = [None] * 21
        row[0], row[1], row[2], row[3], row[4], row[5] = situacao, data, cliente, conta, "CAT", valor
        row[10] = documento
        return row

    rows = [
        ["Relatório"],
        ["Empresa X"],
        ["col a", "col b"],
        linha("Conciliado", "10/03/2024", "FORNECEDOR A", "SICREDI", -100.0),
        linha("A Pagar", 45366, "FORNECEDOR B", "SICREDI", "-1.234,56"),
        linha("  Em   Aberto ", "12/03/2024", "FORNECEDOR C", "SICREDI", "n/a"),
        linha("A Pagar", "13/03/2024", "FORNECEDOR D", "CARTAO", -9.9, documento="cartao-2024-015"),
    ]
    result = parse_omie(rows)
    got = [(o.idx, o.cliente_fornecedor, o.data, o.valor) for o in result.lancamentos]
    expected = [
        (3, "FORNECEDOR A", date(2024, 3, 10), -100.0),
        (4, "FORNECEDOR B", date(2024, 3, 15), -1234.56),
    ]
    ignoradas = sorted(i.linha for i in result.ignoradas)

    if got != expected or ignoradas != [5, 6]:
        _fail(name, f"lançamentos={got} ignoradas={ignoradas}")
    else:
        _pass(name, "layout padrão, serial de planilha e valor BR aceitos")


def test_parse_omie_normaliza_situacao() -> None:
    name = "parse_omie_normaliza_situacao"

    rows = [["Situação", "Data", "Cliente", "Conta", "Categoria", "Valor"],
            ["  Em   Aberto ", "12/03/2024", "FORNECEDOR C", "SICREDI", "CAT", -10.0]]
    result = parse_omie(rows)
    situacoes = [o.situacao for o in result.lancamentos]
    if situacoes != ["Em Aberto"]:
        _fail(name, f"situacoes={situacoes}")
    else:
        _pass(name, "espaços internos colapsados")


# ── 3. Fatura do cartão ───────────────────────────────────────────────────────


def test_parse_cartao_from_text() -> None:
    name = "parse_cartao_from_text"

    result = parse_cartao_from_text(FATURA_CSV)
    info = result.info
    failures = []

    if (info.vencimento, info.valor_total, info.situacao) != (date(2024, 4, 15), 1204.5, "Aberta"):
        failures.append(f"info={info}")
    if (info.despesas_brasil, info.despesas_exterior, info.pagamentos) != (334.5, 0.0, -1000.0):
        failures.append(f"totais={info}")

    got = [(t.descricao, t.valor, t.is_pagamento_fatura, t.is_estorno) for t in result.transacoes]
    expected = [
        ("POSTO SHELL CENTRO", 250.0, False, False),
        ("RESTAURANTE SABOR", 84.5, False, False),
        ("Pag Fat Deb Cc", -1000.0, True, False),
        ("ESTORNO LOJA X", -30.0, False, True),
    ]
    if got != expected:
        failures.append(f"transacoes={got}")

    if any(t.titular != "JOAO SILVA" or t.cartao != "XXXX XXXX XXXX 1234" for t in result.transacoes):
        failures.append("titular/cartão não propagado")
    if [t.idx for t in result.transacoes] != [0, 1, 2, 3]:
        failures.append("idx sequencial")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "resumo + 4 transações com flags corretas")


def test_parse_cartao_varios_titulares() -> None:
    name = "parse_cartao_varios_titulares"

    text = "\n".join([
        "Cartão;XXXX XXXX XXXX 1111;ANA",
        "01/03/2024;LOJA A;1/3;R$ 10,00",
        "Cartão;XXXX XXXX XXXX 2222;BRUNO",
        "02/03/2024;LOJA B;;R$ 20,00",
        "30/02/2024;LOJA C;;R$ 30,00",
    ])
    result = parse_cartao_from_text(text)
    got = [(t.titular, t.cartao[-4:], t.parcela) for t in result.transacoes]

    if got != [("ANA", "1111", "1/3"), ("BRUNO", "2222", "")] or len(result.ignoradas) != 1:
        _fail(name, f"got {got}, ignoradas={result.ignoradas}")
    else:
        _pass(name, "titular de cada bloco + data inválida ignorada")


# ── 4. Decodificação ──────────────────────────────────────────────────────────


def test_workbook_to_rows() -> None:
    name = "workbook_to_rows"

    rows = workbook_to_rows(extrato_xlsx())
    failures = []
    if len(rows) != len(linhas_extrato()):
        failures.append(f"{len(rows)} rows")
    else:
        if rows[0][0] != "Cooperativa: 0101" or rows[0][1] is not None:
            failures.append(f"row0={rows[0]}")
        if rows[9][4] != 1000.0:
            failures.append(f"saldo={rows[9]}")
        if rows[10][:4] != ["10/03/2024", "PAGAMENTO PIX JOAO SILVA", "PIX001", -1500.0]:
            failures.append(f"row10={rows[10]}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, f"{len(rows)} rows, blanks → None")


def test_csv_to_text() -> None:
    name = "csv_to_text"

    failures = []
    if csv_to_text(fatura_csv("latin-1")) != FATURA_CSV:
        failures.append("latin-1")
    if csv_to_text(fatura_csv("utf-8")) != FATURA_CSV:
        failures.append("utf-8")
    if csv_to_text(b"\xef\xbb\xbf" + fatura_csv("utf-8")) != FATURA_CSV:
        failures.append("utf-8 with BOM")

    if failures:
        _fail(name, "failed for: " + ", ".join(failures))
    else:
        _pass(name, "utf-8, utf-8-sig and latin-1 decoded")


def test_csv_to_rows() -> None:
    name = "csv_to_rows"

    rows = csv_to_rows(extrato_csv())
    failures = []
    if len(rows) != len(linhas_extrato()):
        failures.append(f"{len(rows)} rows")
    else:
        if rows[0][0] != "Cooperativa: 0101" or rows[0][1] is not None:
            failures.append(f"row0={rows[0]}")
        if rows[9][4] != "1000,00":
            failures.append(f"saldo={rows[9]}")
        if rows[10][:4] != ["10/03/2024", "PAGAMENTO PIX JOAO SILVA", "PIX001", "-1500,00"]:
            failures.append(f"row10={rows[10]}")

    # Separador ',' e linha em branco preservada
    virgula = csv_to_rows(b"Titulo\n\nData,Valor\n10/03/2024,-15.50")
    if virgula != [["Titulo", None], [None, None], ["Data", "Valor"], ["10/03/2024", "-15.50"]]:
        failures.append(f"virgula={virgula}")
    if csv_to_rows(b"") != [] or csv_to_rows(b"\n\n") != []:
        failures.append("vazio")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "linhas curtas completadas com None, índices iguais aos da planilha")


def test_rows_to_text() -> None:
    """Fatura recebida como planilha volta ao texto ';' com valores no formato BR."""
    name = "rows_to_text"

    rows = [
        ["Cartão", "XXXX XXXX XXXX 1234", "ANA"],
        [datetime(2024, 3, 5), "POSTO SHELL", None, 250.0],
        ["06/03/2024", "LOJA", "2/4", "R$ 10,00"],
    ]
    text = rows_to_text(rows)
    expected = "Cartão;XXXX XXXX XXXX 1234;ANA\n05/03/2024;POSTO SHELL;;250,00\n06/03/2024;LOJA;2/4;R$ 10,00"

    failures = []
    if text != expected:
        failures.append(f"text={text!r}")
    valores = [t.valor for t in parse_cartao_from_text(text).transacoes]
    if valores != [250.0, 10.0]:
        failures.append(f"valores={valores}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "planilha → texto → transações")


def main() -> None:
    print()
    print("=" * 65)
    print("  Parsers — Test Suite")
    print("=" * 65)

    print()
    print("--- Extrato bancário ---")
    _run(test_parse_banco_extrato)
    _run(test_parse_banco_linhas_invalidas)
    _run(test_parse_banco_vazio)

    print()
    print("--- Omie ---")
    _run(test_parse_omie_header_detectado)
    _run(test_parse_omie_layout_padrao)
    _run(test_parse_omie_normaliza_situacao)

    print()
    print("--- Fatura do cartão ---")
    _run(test_parse_cartao_from_text)
    _run(test_parse_cartao_varios_titulares)

    print()
    print("--- Decodificação ---")
    _run(test_workbook_to_rows)
    _run(test_csv_to_text)
    _run(test_csv_to_rows)
    _run(test_rows_to_text)

    # Summary
    print()
    print("=" * 65)
    passed  = sum(1 for r in _results if r["status"] == "PASS")
    failed  = sum(1 for r in _results if r["status"] == "FAIL")
    total   = len(_results)

    print(
        f"  Results: {GREEN}{passed} passed{RESET}  "
        f"{RED}{failed} failed{RESET}  "
        f"({total} total)"
    )
    print("=" * 65)
    print()

    if failed > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()

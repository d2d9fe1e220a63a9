#!/usr/bin/env python3
"""
Testes de conciliador/services/matcher.py

Usage:
    python3 testes/test_matcher.py
    pytest testes/test_matcher.py

What it tests:
1. Camadas A/B/C: precedência, tolerância de centavo, no máximo um match por lançamento
2. Desempate: prioridade da regra → menor diferença de dias → menor idx do Omie
3. Camada D: pontuação exige nome/CNPJ, respeita a janela máxima
4. Fatura do cartão: débito no extrato x pagamento da fatura no Omie
5. Cartão x NF: passada por nome, passada só por valor, categoria sugerida
"""
import sys
import logging
from datetime import date
from pathlib import Path

# ── Project setup ─────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from conciliador.config import settings  # noqa: E402
from conciliador.models.lancamentos import EstadoConciliacao, MatchInvalidoError  # noqa: E402
from conciliador.services.matcher import (  # noqa: E402
    is_omie_fatura,
    match_camada_a,
    match_camada_b,
    match_camada_c,
    match_camada_d,
    match_cartao_nf,
    match_fatura_cartao,
)
from dados_conciliacao import banco, omie, transacao  # noqa: E402

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


def _camadas_abcd(bancos, omies, estado) -> None:
    match_camada_a(bancos, omies, estado)
    match_camada_b(bancos, omies, estado)
    match_camada_c(bancos, omies, estado)
    match_camada_d(bancos, omies, estado)


def _pares(estado) -> list[tuple]:
    return [(m.camada, m.tipo, m.banco.idx, m.omie.idx) for m in estado.matches]


# ── 1. Camadas A/B/C ──────────────────────────────────────────────────────────


def test_camada_a_valor_data() -> None:
    name = "camada_a_valor_data"

    b = banco(10, date(2024, 3, 10), -1500.0)
    o = omie(4, date(2024, 3, 10), -1500.0)
    estado = EstadoConciliacao()
    n = match_camada_a([b], [o], estado)

    eb, eo = estado.banco[10], estado.omie[4]
    if n != 1 or _pares(estado) != [("A", "Valor+Data", 10, 4)]:
        _fail(name, f"n={n} pares={_pares(estado)}")
    elif (eb.par_idx, eo.par_idx, eb.camada, eo.tipo) != (4, 10, "A", "Valor+Data"):
        _fail(name, f"estado banco={eb} omie={eo}")
    else:
        _pass(name, "A / Valor+Data, estado nos dois lados")


def test_camada_a_cnpj() -> None:
    name = "camada_a_cnpj"

    b = banco(10, date(2024, 3, 10), -320.0, descricao="TED 12345678000190 METALURGICA BETA")
    o_cnpj = omie(7, date(2024, 3, 11), -320.0, cliente="METALURGICA BETA", cnpj_cpf="12.345.678/0001-90")
    estado = EstadoConciliacao()
    match_camada_a([b], [o_cnpj], estado)

    if _pares(estado) != [("A", "CNPJ+Valor+Data", 10, 7)]:
        _fail(name, f"pares={_pares(estado)}")
    else:
        _pass(name, "CNPJ igual, 1 dia de diferença → A")


def test_camada_b_cnpj_valor_proximo() -> None:
    """CNPJ igual com valor 3% diferente casa na B mesmo sem nome compatível; a C exige nome."""
    name = "camada_b_cnpj_valor_proximo"

    def _cenario():
        b = banco(10, date(2024, 3, 10), -1000.0, descricao="TED 12345678000190 METALURGICA BETA")
        o = omie(7, date(2024, 3, 13), -1030.0, cliente="FORJARIA GAMA", cnpj_cpf="12.345.678/0001-90")
        return [b], [o]

    estado = EstadoConciliacao()
    bancos, omies = _cenario()
    n_a = match_camada_a(bancos, omies, estado)
    match_camada_b(bancos, omies, estado)
    pares_b = _pares(estado)

    estado_c = EstadoConciliacao()
    bancos, omies = _cenario()
    n_c = match_camada_c(bancos, omies, estado_c)

    failures = []
    if n_a or pares_b != [("B", "CNPJ+Data+ValorProx", 10, 7)]:
        failures.append(f"A={n_a} pares={pares_b}")
    if n_c:
        failures.append(f"camada C casou sem nome: {_pares(estado_c)}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "CNPJ + valor a 3% → B; C não casa sem nome")


def test_tolerancia_centavo() -> None:
    """Diferença de 0,01 ainda é valor igual; 0,02 já não é."""
    name = "tolerancia_centavo"

    estado = EstadoConciliacao()
    match_camada_a([banco(1, date(2024, 3, 10), -1500.0)], [omie(1, date(2024, 3, 10), -1500.01)], estado)
    um_centavo = _pares(estado)

    estado = EstadoConciliacao()
    bancos = [banco(1, date(2024, 3, 10), -1500.0)]
    omies = [omie(1, date(2024, 3, 10), -1500.02)]
    n_a = match_camada_a(bancos, omies, estado)
    n_b = match_camada_b(bancos, omies, estado)
    match_camada_c(bancos, omies, estado)
    dois_centavos = _pares(estado)

    failures = []
    if um_centavo != [("A", "Valor+Data", 1, 1)]:
        failures.append(f"0,01 → {um_centavo}")
    if n_a or n_b or dois_centavos != [("C", "ValorProx+Nome", 1, 1)]:
        failures.append(f"0,02 → A={n_a} B={n_b} pares={dois_centavos}")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "0,01 casa em A; 0,02 só em C (ValorProx+Nome)")


def test_precedencia_camadas() -> None:
    """O que casa em A não é mais visto por B, C ou D."""
    name = "precedencia_camadas"

    bancos = [banco(1, date(2024, 3, 10), -100.0)]
    omies = [omie(1, date(2024, 3, 12), -100.0), omie(2, date(2024, 3, 10), -100.0)]
    estado = EstadoConciliacao()
    _camadas_abcd(bancos, omies, estado)

    if _pares(estado) != [("A", "Valor+Data", 1, 2)] or not estado.omie_livre(omies[0]):
        _fail(name, f"pares={_pares(estado)}")
    else:
        _pass(name, "mesma data vence em A; o outro continua livre")


def test_um_match_por_lancamento() -> None:
    name = "um_match_por_lancamento"

    bancos = [banco(1, date(2024, 3, 10), -100.0), banco(2, date(2024, 3, 10), -100.0)]
    omies = [omie(1, date(2024, 3, 10), -100.0)]
    estado = EstadoConciliacao()
    _camadas_abcd(bancos, omies, estado)

    failures = []
    if _pares(estado) != [("A", "Valor+Data", 1, 1)]:
        failures.append(f"pares={_pares(estado)}")
    if not estado.banco_livre(bancos[1]):
        failures.append("segundo lançamento bancário casado")

    try:
        estado.marcar_match(bancos[1], omies[0], "X", "manual")
        failures.append("marcar_match aceitou Omie já conciliado")
    except MatchInvalidoError:
        pass

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "segundo banco fica livre; re-match levanta MatchInvalidoError")


# ── 2. Desempate ──────────────────────────────────────────────────────────────


def test_desempate_dias_e_idx() -> None:
    name = "desempate_dias_e_idx"

    b = banco(1, date(2024, 3, 10), -200.0, descricao="PAGAMENTO PIX FORNECEDOR")
    omies = [
        omie(5, date(2024, 3, 12), -200.0, cliente="X"),
        omie(3, date(2024, 3, 11), -200.0, cliente="Y"),
        omie(4, date(2024, 3, 11), -200.0, cliente="Z"),
    ]
    estado = EstadoConciliacao()
    n_a = match_camada_a([b], omies, estado)
    match_camada_b([b], omies, estado)

    if n_a or _pares(estado) != [("B", "Valor+DataProx", 1, 3)]:
        _fail(name, f"A={n_a} pares={_pares(estado)}")
    else:
        _pass(name, "B escolhe 1 dia de diferença e, no empate, o menor idx (#3)")


def test_desempate_prioridade_regra() -> None:
    """Regra de maior prioridade vence mesmo com mais dias de diferença."""
    name = "desempate_prioridade_regra"

    b = banco(1, date(2024, 3, 10), -480.0, descricao="PAGAMENTO PIX MARCENARIA PINHO")
    omies = [
        omie(1, date(2024, 3, 10), -495.0, cliente="MARCENARIA PINHO"),
        omie(2, date(2024, 3, 14), -480.0, cliente="MARCENARIA PINHO"),
    ]
    estado = EstadoConciliacao()
    match_camada_c([b], omies, estado)

    if _pares(estado) != [("C", "Valor+DataProx+Nome", 1, 2)]:
        _fail(name, f"pares={_pares(estado)}")
    else:
        _pass(name, "Valor+DataProx+Nome (4 dias) antes de regra menos prioritária")


# ── 3. Camada D ───────────────────────────────────────────────────────────────


def test_camada_d_data_divergente() -> None:
    name = "camada_d_data_divergente"

    bancos = [banco(1, date(2024, 3, 1), -750.0, descricao="PAGAMENTO PIX MARIA OLIVEIRA")]
    omies = [omie(9, date(2024, 3, 20), -750.0, cliente="MARIA OLIVEIRA")]
    estado = EstadoConciliacao()
    _camadas_abcd(bancos, omies, estado)

    if _pares(estado) != [("D", "Valor+Nome(DataDiv)", 1, 9)]:
        _fail(name, f"pares={_pares(estado)}")
    else:
        _pass(name, "19 dias, valor + nome → D / Valor+Nome(DataDiv)")


def test_camada_d_sem_sinal() -> None:
    """Valor igual sem nome/CNPJ não basta; fora da janela nada casa."""
    name = "camada_d_sem_sinal"

    estado = EstadoConciliacao()
    _camadas_abcd(
        [banco(1, date(2024, 3, 1), -750.0, descricao="PAGAMENTO PIX FULANO")],
        [omie(9, date(2024, 3, 20), -750.0, cliente="BELTRANO COMERCIO")],
        estado,
    )
    sem_nome = _pares(estado)

    estado = EstadoConciliacao()
    _camadas_abcd(
        [banco(1, date(2024, 3, 1), -750.0, descricao="PAGAMENTO PIX MARIA OLIVEIRA")],
        [omie(9, date(2024, 4, 2), -750.0, cliente="MARIA OLIVEIRA")],
        estado,
    )
    fora_janela = _pares(estado)

    if sem_nome or fora_janela:
        _fail(name, f"sem_nome={sem_nome} fora_janela={fora_janela}")
    else:
        _pass(name, f"sem sinal → nada; {settings.janela_camada_d}+ dias → nada")


# ── 4. Fatura do cartão ───────────────────────────────────────────────────────


def test_match_fatura_cartao() -> None:
    name = "match_fatura_cartao"

    bancos = [
        banco(11, date(2024, 3, 15), -1000.0, descricao="DEB.CTA.FATURA"),
        banco(12, date(2024, 3, 15), -1000.0, descricao="PAGAMENTO PIX JOAO SILVA"),
    ]
    omies = [
        omie(3, date(2024, 3, 15), -1000.0, cliente="JOAO SILVA"),
        omie(9, date(2024, 3, 16), -1000.0, cliente="CARTAO DE CREDITO", conta="CARTAO DE CREDITO SICREDI",
             origem="Saída de Transferência"),
    ]
    estado = EstadoConciliacao()
    n = match_fatura_cartao(bancos, omies, estado)

    failures = []
    if n != 1 or _pares(estado) != [("FATURA", "FATURA_CARTAO", 11, 9)]:
        failures.append(f"pares={_pares(estado)}")
    if not is_omie_fatura(omie(1, date(2024, 3, 1), -1.0, cliente="X", origem="Débito de Transferência")):
        failures.append("origem de transferência não reconhecida")
    if is_omie_fatura(omies[0]):
        failures.append("JOAO SILVA reconhecido como fatura")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "só DEB.CTA.FATURA x pagamento de fatura, camada FATURA")


# ── 5. Cartão x NF ────────────────────────────────────────────────────────────


def test_cartao_nf_passadas() -> None:
    name = "cartao_nf_passadas"

    conta = "CARTAO DE CREDITO SICREDI"
    transacoes = [
        transacao(0, date(2024, 3, 7), 84.5, "RESTAURANTE SABOR"),
        transacao(1, date(2024, 3, 5), 250.0, "POSTO SHELL CENTRO"),
        transacao(2, date(2024, 3, 5), 300.0, "LOJA DISTANTE"),
        transacao(3, date(2024, 3, 10), -1000.0, "Pag Fat Deb Cc"),
        transacao(4, date(2024, 3, 12), 150.0, "SUPERMERCADO CONDOR"),
    ]
    omie_cartao = [
        # 13 dias de diferença: só casa porque o nome bate (primeira passada)
        omie(8, date(2024, 3, 20), -84.5, cliente="RESTAURANTE SABOR", conta=conta,
             tipo_doc="NFC-e", nota_fiscal="9876"),
        omie(9, date(2024, 3, 8), -250.0, cliente="COMERCIAL ALFA", conta=conta, nota_fiscal="555"),
        omie(10, date(2024, 3, 25), -300.0, cliente="GAMMA", conta=conta),
        omie(11, date(2024, 3, 10), -1000.0, cliente="CARTAO DE CREDITO", conta=conta,
             origem="Saída de Transferência"),
    ]
    estado = EstadoConciliacao()
    n = match_cartao_nf(transacoes, omie_cartao, estado)

    c = estado.cartao
    failures = []
    if n != 2:
        failures.append(f"n={n}")
    if not c[0].matched_nf or (c[0].omie_idx, c[0].nf, c[0].tipo_doc) != (8, "9876", "NFC-e"):
        failures.append(f"restaurante={c.get(0)}")
    if not c[1].matched_nf or (c[1].omie_idx, c[1].fornecedor_omie) != (9, "COMERCIAL ALFA"):
        failures.append(f"posto={c.get(1)}")
    if c[2].matched_nf or c[2].categoria_sugerida != settings.categoria_padrao:
        failures.append(f"fora da janela={c.get(2)}")
    if 3 in c:
        failures.append("pagamento de fatura participou")
    if c[4].categoria_sugerida != "MERCADO":
        failures.append(f"mercado={c.get(4)}")

    eo = estado.omie[8]
    if (eo.matched, eo.tipo, eo.camada, eo.par_idx) != (True, "CARTAO_NF", "CARTAO", 0):
        failures.append(f"estado omie #8={eo}")
    if not estado.omie_livre(omie_cartao[2]) or not estado.omie_livre(omie_cartao[3]):
        failures.append("Omie #10/#11 deveriam continuar livres")

    if failures:
        _fail(name, "; ".join(failures))
    else:
        _pass(name, "nome (sem janela), valor (≤10 dias), categoria para as que sobram")


def test_cartao_nf_nome_antes_de_valor() -> None:
    """A passada por nome roda inteira antes da passada só por valor."""
    name = "cartao_nf_nome_antes_de_valor"

    conta = "CARTAO DE CREDITO SICREDI"
    transacoes = [
        transacao(0, date(2024, 3, 5), 60.0, "LOJA QUALQUER"),
        transacao(1, date(2024, 3, 5), 60.0, "FARMACIA POPULAR"),
    ]
    omie_cartao = [omie(20, date(2024, 3, 5), -60.0, cliente="FARMACIA POPULAR", conta=conta)]
    estado = EstadoConciliacao()
    match_cartao_nf(transacoes, omie_cartao, estado)

    if estado.cartao[0].matched_nf or estado.cartao[1].omie_idx != 20:
        _fail(name, f"cartao={estado.cartao}")
    else:
        _pass(name, "NF vai para a transação de nome compatível")


def main() -> None:
    print()
    print("=" * 65)
    print("  Matcher — Test Suite")
    print("=" * 65)

    print()
    print("--- Camadas A/B/C ---")
    _run(test_camada_a_valor_data)
    _run(test_camada_a_cnpj)
    _run(test_camada_b_cnpj_valor_proximo)
    _run(test_tolerancia_centavo)
    _run(test_precedencia_camadas)
    _run(test_um_match_por_lancamento)

    print()
    print("--- Desempate ---")
    _run(test_desempate_dias_e_idx)
    _run(test_desempate_prioridade_regra)

    print()
    print("--- Camada D ---")
    _run(test_camada_d_data_divergente)
    _run(test_camada_d_sem_sinal)

    print()
    print("--- Fatura do cartão ---")
    _run(test_match_fatura_cartao)

    print()
    print("--- Cartão x NF ---")
    _run(test_cartao_nf_passadas)
    _run(test_cartao_nf_nome_antes_de_valor)

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

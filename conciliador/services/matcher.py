"""
Matching em camadas banco x Omie, fatura do cartão e cartão x NF.

Ordem fixa: A → B → C → D (banco x Omie conta corrente), depois fatura do
cartão (banco x Omie completo), depois cartão x NF (fatura x Omie cartão).
Cada camada só enxerga o que as anteriores deixaram livre.

Dentro de uma camada, cada lançamento bancário (na ordem do extrato) fica com
o melhor candidato livre: regra de maior prioridade, depois menor diferença de
dias, depois menor idx do Omie.
"""
import logging
import re
from typing import Callable, Optional

from conciliador.config import settings
from conciliador.models.categorias import CategoriaItem, suggest_categoria
from conciliador.models.lancamentos import (
    EstadoConciliacao,
    LancamentoBanco,
    LancamentoOmie,
    TransacaoCartao,
)
from conciliador.models.regras import KEYWORDS_OMIE_FATURA, ORIGENS_OMIE_TRANSFERENCIA
from conciliador.services.normalizacao import (
    days_diff,
    nome_compativel,
    nome_compativel_cartao,
    normalize_cnpj_cpf,
    valores_iguais,
)

logger = logging.getLogger(__name__)

Regra = tuple[str, Callable[[LancamentoBanco, LancamentoOmie], bool]]


# ============================================================
# Predicados
# ============================================================


def _mesmo_valor(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    return valores_iguais(b.valor, o.valor, settings.tolerancia_valor)


def _valor_proximo(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    if b.valor == 0:
        return False
    return abs(b.valor - o.valor) / abs(b.valor) <= settings.tolerancia_pct_valor_proximo


def _mesmo_cnpj(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    b_cnpj = normalize_cnpj_cpf(b.cnpj_cpf)
    return bool(b_cnpj) and b_cnpj == normalize_cnpj_cpf(o.cnpj_cpf)


def _cnpj_nas_obs(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    b_cnpj = normalize_cnpj_cpf(b.cnpj_cpf)
    return bool(b_cnpj and o.observacoes) and b_cnpj in normalize_cnpj_cpf(o.observacoes)


def _historico_nas_obs(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    """Pelo menos 3 palavras (>3 letras) do histórico bancário aparecem nas observações."""
    if not o.observacoes:
        return False
    obs = o.observacoes.upper().replace("\n", " ")
    key_parts = [p for p in b.descricao.upper().split() if len(p) > 3]
    if len(key_parts) < 3:
        return False
    encontrados = sum(1 for p in key_parts if p in obs)
    return encontrados >= min(3, len(key_parts))


def _nomes(b: LancamentoBanco, o: LancamentoOmie) -> bool:
    return nome_compativel(b.nome, b.descricao, o.cliente_fornecedor, o.razao_social)


def _dias(b: LancamentoBanco, o: LancamentoOmie) -> int:
    return days_diff(b.data, o.data)


# ============================================================
# Regras de cada camada (ordem = prioridade)
# ============================================================


def regras_camada_a() -> list[Regra]:
    return [
        ("Valor+Data",        lambda b, o: _mesmo_valor(b, o) and _dias(b, o) == 0),
        ("CNPJ+Valor+Data",   lambda b, o: _mesmo_cnpj(b, o) and _mesmo_valor(b, o)
                                           and _dias(b, o) <= settings.janela_camada_a_cnpj),
        ("Observações+Valor", lambda b, o: _mesmo_valor(b, o) and _historico_nas_obs(b, o)
                                           and _dias(b, o) <= settings.janela_camada_a_obs),
        ("CNPJ_obs+Valor",    lambda b, o: _mesmo_valor(b, o) and _cnpj_nas_obs(b, o)
                                           and _dias(b, o) <= settings.janela_camada_a_obs),
    ]


def regras_camada_b() -> list[Regra]:
    return [
        ("Valor+DataProx",         lambda b, o: _mesmo_valor(b, o) and _dias(b, o) <= settings.janela_camada_b),
        ("CNPJ+Valor+DataProx",    lambda b, o: _mesmo_cnpj(b, o) and _mesmo_valor(b, o)
                                                and _dias(b, o) <= settings.janela_camada_b_cnpj),
        ("CNPJ_obs_parcial+Valor", lambda b, o: _mesmo_valor(b, o) and _cnpj_nas_obs(b, o)
                                                and _dias(b, o) <= settings.janela_camada_b_cnpj),
        ("CNPJ+Data+ValorProx",    lambda b, o: _mesmo_cnpj(b, o) and _valor_proximo(b, o)
                                                and _dias(b, o) <= settings.janela_camada_b_cnpj),
    ]


def regras_camada_c() -> list[Regra]:
    return [
        ("Valor+DataProx+Nome", lambda b, o: _mesmo_valor(b, o) and _dias(b, o) <= settings.janela_camada_c
                                             and _nomes(b, o)),
        ("ValorProx+Nome",      lambda b, o: _valor_proximo(b, o) and _dias(b, o) <= settings.janela_camada_c
                                             and _nomes(b, o)),
    ]


# ============================================================
# Execução por regras
# ============================================================


def _melhor_candidato(
    b: LancamentoBanco,
    omie: list[LancamentoOmie],
    estado: EstadoConciliacao,
    regras: list[Regra],
) -> Optional[tuple[LancamentoOmie, str]]:
    melhor = None
    melhor_chave = None
    for o in omie:
        if not estado.omie_livre(o):
            continue
        for prioridade, (tipo, predicado) in enumerate(regras):
            if predicado(b, o):
                chave = (prioridade, _dias(b, o), o.idx)
                if melhor_chave is None or chave < melhor_chave:
                    melhor, melhor_chave = (o, tipo), chave
                break
    return melhor


def _executar_camada(
    camada: str,
    banco: list[LancamentoBanco],
    omie: list[LancamentoOmie],
    estado: EstadoConciliacao,
    regras: list[Regra],
) -> int:
    n = 0
    for b in banco:
        if not estado.banco_livre(b):
            continue
        escolhido = _melhor_candidato(b, omie, estado, regras)
        if escolhido is None:
            continue
        o, tipo = escolhido
        estado.marcar_match(b, o, camada, tipo)
        n += 1
    logger.debug("Camada %s: %d matches", camada, n)
    return n


def match_camada_a(banco: list[LancamentoBanco], omie: list[LancamentoOmie], estado: EstadoConciliacao) -> int:
    """Camada A: valor exato + data exata, ou CNPJ/observações confirmando o valor."""
    return _executar_camada("A", banco, omie, estado, regras_camada_a())


def match_camada_b(banco: list[LancamentoBanco], omie: list[LancamentoOmie], estado: EstadoConciliacao) -> int:
    """Camada B: valor exato com janela de dias, ou CNPJ igual com valor próximo."""
    return _executar_camada("B", banco, omie, estado, regras_camada_b())


def match_camada_c(banco: list[LancamentoBanco], omie: list[LancamentoOmie], estado: EstadoConciliacao) -> int:
    """Camada C: valor aproximado / janela maior, sempre confirmado pelo nome."""
    return _executar_camada("C", banco, omie, estado, regras_camada_c())


def _score_camada_d(b: LancamentoBanco, o: LancamentoOmie) -> tuple[int, bool]:
    score = 0
    if _mesmo_valor(b, o):
        score += 3
    elif _valor_proximo(b, o):
        score += 1

    dd = _dias(b, o)
    if dd <= 1:
        score += 2
    elif dd <= 3:
        score += 1

    nome = _nomes(b, o)
    cnpj = _mesmo_cnpj(b, o)
    if nome:
        score += 2
    if cnpj:
        score += 3
    return score, nome or cnpj


def match_camada_d(banco: list[LancamentoBanco], omie: list[LancamentoOmie], estado: EstadoConciliacao) -> int:
    """Camada D: pontuação (valor, data, nome, CNPJ) dentro da janela maior.

    Exige nome ou CNPJ compatível; só valor+data não basta aqui.
    """
    n = 0
    for b in banco:
        if not estado.banco_livre(b):
            continue

        melhor: Optional[LancamentoOmie] = None
        melhor_chave = None
        melhor_score = 0
        for o in omie:
            if not estado.omie_livre(o) or _dias(b, o) > settings.janela_camada_d:
                continue
            score, sinal = _score_camada_d(b, o)
            if not sinal or score < settings.score_minimo_camada_d:
                continue
            chave = (-score, _dias(b, o), o.idx)
            if melhor_chave is None or chave < melhor_chave:
                melhor, melhor_chave, melhor_score = o, chave, score

        if melhor is None:
            continue

        valor_ok = _mesmo_valor(b, melhor)
        data_ok = _dias(b, melhor) <= 3
        if valor_ok and not data_ok:
            tipo = "Valor+Nome(DataDiv)"
        elif data_ok and not valor_ok:
            tipo = "Data+Nome(ValorDiv)"
        else:
            tipo = f"Score={melhor_score}"

        estado.marcar_match(b, melhor, "D", tipo)
        n += 1

    logger.debug("Camada D: %d matches", n)
    return n


# ============================================================
# FATURA CARTÃO
# ============================================================


def is_omie_fatura(o: LancamentoOmie) -> bool:
    """Lançamento Omie que representa o pagamento da fatura do cartão."""
    cliente = o.cliente_fornecedor.upper()
    categoria = o.categoria.upper()
    return (
        any(k in cliente or k in categoria for k in KEYWORDS_OMIE_FATURA)
        or any(origem in o.origem for origem in ORIGENS_OMIE_TRANSFERENCIA)
    )


def match_fatura_cartao(banco: list[LancamentoBanco], omie: list[LancamentoOmie], estado: EstadoConciliacao) -> int:
    """Débito da fatura no extrato x lançamento de pagamento da fatura no Omie (qualquer conta)."""
    regras: list[Regra] = [
        ("FATURA_CARTAO", lambda b, o: is_omie_fatura(o) and _mesmo_valor(b, o)
                                       and _dias(b, o) <= settings.janela_fatura_cartao),
    ]
    faturas = [b for b in banco if b.tipo == "FATURA_CARTAO"]
    return _executar_camada("FATURA", faturas, omie, estado, regras)


# ============================================================
# CARTÃO ↔ NF
# ============================================================


def _is_transferencia(o: LancamentoOmie) -> bool:
    return "Transferência" in o.origem or "Transferência" in o.categoria


def _candidato_cartao(
    t: TransacaoCartao,
    omie_cartao: list[LancamentoOmie],
    estado: EstadoConciliacao,
    exige_nome: bool,
) -> Optional[LancamentoOmie]:
    melhor = None
    melhor_chave = None
    for o in omie_cartao:
        if not estado.omie_livre(o) or _is_transferencia(o):
            continue
        if not valores_iguais(abs(o.valor), abs(t.valor), settings.tolerancia_valor):
            continue
        dd = days_diff(t.data, o.data)
        if exige_nome:
            if not nome_compativel_cartao(t.descricao, o.cliente_fornecedor, o.razao_social):
                continue
        elif dd > settings.janela_cartao_nf:
            continue
        chave = (dd, o.idx)
        if melhor_chave is None or chave < melhor_chave:
            melhor, melhor_chave = o, chave
    return melhor


def match_cartao_nf(
    transacoes: list[TransacaoCartao],
    omie_cartao: list[LancamentoOmie],
    estado: EstadoConciliacao,
    catalogo: Optional[tuple[CategoriaItem, ...]] = None,
) -> int:
    """Transações da fatura x lançamentos Omie da conta cartão (NF já lançada).

    Primeira passada exige valor + nome compatível; a segunda aceita só valor
    dentro da janela. Pagamentos de fatura e estornos não participam. As
    transações que sobram recebem categoria sugerida para importação.
    """
    elegiveis = [t for t in transacoes if not t.is_pagamento_fatura and not t.is_estorno]

    n = 0
    for exige_nome in (True, False):
        for t in elegiveis:
            et = estado.estado_cartao(t)
            if et.matched_nf:
                continue
            o = _candidato_cartao(t, omie_cartao, estado, exige_nome)
            if o is None:
                continue
            et.matched_nf = True
            et.omie_idx = o.idx
            et.fornecedor_omie = o.cliente_fornecedor
            et.tipo_doc = o.tipo_doc
            et.nf = o.nota_fiscal
            estado.marcar_omie(o, "CARTAO_NF", camada="CARTAO", par_idx=t.idx)
            n += 1

    for t in elegiveis:
        et = estado.estado_cartao(t)
        if not et.matched_nf:
            et.categoria_sugerida = suggest_categoria(t.descricao, catalogo)

    logger.debug("Cartão x NF: %d matches", n)
    return n

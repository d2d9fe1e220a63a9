"""
Classificação das divergências da conciliação (tipos A, T, B, B*, G, C, D, E, F, H, I).

Roda depois de todas as camadas de match. Lê o estado de match, nunca casa nada
novo; a única marcação que faz é a das duplicidades (tipo E), para que o
lançamento repetido não apareça também como "a mais no Omie".
"""
import logging
from typing import Iterable

from conciliador.config import settings
from conciliador.models.lancamentos import (
    TIPOS_DIVERGENCIA,
    Divergencia,
    EstadoConciliacao,
    LancamentoBanco,
    LancamentoOmie,
    TransacaoCartao,
)
from conciliador.models.regras import KEYWORDS_FATURA_BANCO, OBS_CTE, OBS_NFE_AUTOMATICA
from conciliador.services.normalizacao import days_diff, normalize_cnpj_cpf, normalize_text, valores_iguais

logger = logging.getLogger(__name__)

ACAO_TRANSFERENCIA = "Lançar transferência Conta Corrente → Cartão de Crédito no Omie"
ACAO_INVESTIGAR = "Investigar"
ACAO_ATRASO_RECEBER = "Conta a receber em atraso: cobrar cliente"
ACAO_ATRASO_PAGAR = "Conta a pagar em atraso: verificar pagamento"
ACAO_CONTA_ERRADA = "Compra de cartão lançada na conta corrente. Mover para conta Cartão de Crédito no Omie."
ACAO_POSSIVEL_CONTA_ERRADA = ("Possível compra de cartão na conta corrente. "
                              "Verificar se é compra no cartão de crédito.")
ACAO_CTE = ("Frete (CT-e) aguardando agrupamento quinzenal. "
            "Será cobrado no próximo boleto do fornecedor.")
ACAO_NFE_PARCELADA = ("NF-e sem pagamento correspondente. Verificar se foi parcelada: "
                      "conferir parcelas, datas e valores no Omie.")
ACAO_DUPLICIDADE = "Verificar lançamento em duplicidade no Omie"
ACAO_VALOR_DIVERGENTE = "Conferir valor (juros, desconto ou lançamento parcial)"
ACAO_DATA_DIVERGENTE = "Ajustar data de pagamento no Omie"
ACAO_CARTAO_COBERTO = "Coberto por NF já lançada no Omie"
ACAO_CARTAO_IMPORTAR = "Importar no Omie (conta Cartão de Crédito)"


def _valor_key(valor: float) -> str:
    return f"{abs(valor):.2f}"


def _is_nfe_automatica(o: LancamentoOmie) -> bool:
    obs = (o.observacoes or "").upper()
    return any(k in obs for k in OBS_NFE_AUTOMATICA)


def _is_cte(o: LancamentoOmie) -> bool:
    obs = (o.observacoes or "").upper()
    return any(k in obs for k in OBS_CTE)


def _is_atrasado(o: LancamentoOmie) -> bool:
    return normalize_text(o.situacao).strip() == "atrasado"


# ============================================================
# DUPLICIDADES (tipo E)
# ============================================================


def _chave_duplicidade(o: LancamentoOmie) -> tuple[str, str, str]:
    contraparte = normalize_cnpj_cpf(o.cnpj_cpf) or o.cliente_fornecedor.upper().strip()
    return contraparte, f"{o.valor:.2f}", o.data.isoformat()


def detect_duplicates(omie: list[LancamentoOmie], estado: EstadoConciliacao) -> list[Divergencia]:
    """Lançamentos Omie com mesma contraparte + valor + data.

    Em cada grupo, o primeiro lançamento conciliado (ou, sem nenhum conciliado, o
    de menor idx) é o original; cada outro lançamento livre vira uma divergência
    E e é marcado como DUPLICIDADE.
    """
    grupos: dict[tuple[str, str, str], list[LancamentoOmie]] = {}
    for o in omie:
        grupos.setdefault(_chave_duplicidade(o), []).append(o)

    divergencias: list[Divergencia] = []
    for entradas in grupos.values():
        if len(entradas) < 2:
            continue
        conciliados = [e for e in entradas if not estado.omie_livre(e)]
        original = conciliados[0] if conciliados else min(entradas, key=lambda e: e.idx)

        for o in entradas:
            if o is original or not estado.omie_livre(o):
                continue
            estado.marcar_omie(o, "DUPLICIDADE", par_idx=original.idx)
            divergencias.append(Divergencia(
                tipo="E",
                tipo_nome=TIPOS_DIVERGENCIA["E"],
                fonte="Omie",
                data=o.data,
                valor=o.valor,
                descricao=o.cliente_fornecedor,
                cnpj_cpf=o.cnpj_cpf,
                nome=o.cliente_fornecedor,
                situacao=o.situacao,
                origem=o.origem,
                acao=ACAO_DUPLICIDADE,
                obs=f"Duplicado de #{original.idx}",
                omie=o,
            ))

    if divergencias:
        logger.info("Duplicidades no Omie: %d", len(divergencias))
    return divergencias


# ============================================================
# CLASSIFICAÇÃO
# ============================================================


def _divergencia_banco(b: LancamentoBanco) -> Divergencia:
    desc_upper = (b.descricao or "").upper()
    transferencia = any(k in desc_upper for k in KEYWORDS_FATURA_BANCO)
    tipo = "T" if transferencia else "A"
    return Divergencia(
        tipo=tipo,
        tipo_nome=TIPOS_DIVERGENCIA[tipo],
        fonte="Banco",
        data=b.data,
        valor=b.valor,
        descricao=b.descricao,
        cnpj_cpf=b.cnpj_cpf,
        nome=b.nome,
        acao=ACAO_TRANSFERENCIA if transferencia else "",
        banco=b,
    )


def _divergencia_omie(o: LancamentoOmie, valores_cartao: set[str]) -> Divergencia:
    base = dict(
        fonte="Omie",
        data=o.data,
        valor=o.valor,
        cnpj_cpf=o.cnpj_cpf,
        nome=o.cliente_fornecedor,
        situacao=o.situacao,
        origem=o.origem,
        omie=o,
    )

    if _is_atrasado(o) and "previsao" in normalize_text(o.origem):
        return Divergencia(tipo="G", tipo_nome=TIPOS_DIVERGENCIA["G"], descricao=o.cliente_fornecedor, **base)

    descricao = o.observacoes or o.cliente_fornecedor or o.cnpj_cpf
    if _is_atrasado(o):
        acao = ACAO_ATRASO_RECEBER if "receber" in normalize_text(o.origem) else ACAO_ATRASO_PAGAR
        return Divergencia(tipo="B*", tipo_nome=TIPOS_DIVERGENCIA["B*"], descricao=descricao,
                           acao=acao, obs=o.observacoes, **base)

    # Saída lançada por NF-e automática: possível compra de cartão na conta corrente
    if o.valor < 0 and _is_nfe_automatica(o):
        if _valor_key(o.valor) in valores_cartao:
            return Divergencia(tipo="F", tipo_nome=TIPOS_DIVERGENCIA["F"], descricao=descricao,
                               acao=ACAO_CONTA_ERRADA, obs=o.observacoes, confianca="alta", **base)
        if abs(o.valor) <= settings.limite_conta_errada:
            return Divergencia(tipo="F", tipo_nome=f"POSSÍVEL {TIPOS_DIVERGENCIA['F']}", descricao=descricao,
                               acao=ACAO_POSSIVEL_CONTA_ERRADA, obs=o.observacoes, confianca="media", **base)

    acao = ACAO_INVESTIGAR
    if _is_cte(o):
        acao = ACAO_CTE
    if o.valor < 0 and _is_nfe_automatica(o) and abs(o.valor) > settings.limite_nfe_parcelada:
        acao = ACAO_NFE_PARCELADA

    return Divergencia(tipo="B", tipo_nome=TIPOS_DIVERGENCIA["B"], descricao=descricao,
                       acao=acao, obs=o.observacoes, **base)


def _divergencias_match(estado: EstadoConciliacao) -> Iterable[Divergencia]:
    for m in estado.matches:
        b, o = m.banco, m.omie
        mesmo_valor = valores_iguais(b.valor, o.valor, settings.tolerancia_valor)

        if not mesmo_valor:
            yield Divergencia(
                tipo="C",
                tipo_nome=TIPOS_DIVERGENCIA["C"],
                fonte="Ambos",
                data=b.data,
                valor=b.valor,
                valor_banco=b.valor,
                valor_omie=o.valor,
                diferenca=round(b.valor - o.valor, 2),
                descricao=b.descricao,
                cnpj_cpf=b.cnpj_cpf,
                nome=o.cliente_fornecedor,
                acao=ACAO_VALOR_DIVERGENTE,
                obs=f"Camada {m.camada}: {m.tipo}",
                banco=b,
                omie=o,
            )

        dd = days_diff(b.data, o.data)
        if dd > settings.dias_data_divergente and mesmo_valor:
            yield Divergencia(
                tipo="D",
                tipo_nome=TIPOS_DIVERGENCIA["D"],
                fonte="Ambos",
                data=b.data,
                valor=b.valor,
                data_banco=b.data,
                data_omie=o.data,
                dias_diferenca=dd,
                descricao=b.descricao,
                cnpj_cpf=b.cnpj_cpf,
                nome=o.cliente_fornecedor,
                acao=ACAO_DATA_DIVERGENTE,
                obs=f"Camada {m.camada}: {m.tipo}",
                banco=b,
                omie=o,
            )


def _divergencias_cartao(transacoes: list[TransacaoCartao], estado: EstadoConciliacao) -> Iterable[Divergencia]:
    for t in transacoes:
        if t.is_pagamento_fatura or t.is_estorno:
            continue
        et = estado.estado_cartao(t)
        if et.matched_nf:
            yield Divergencia(
                tipo="H",
                tipo_nome=TIPOS_DIVERGENCIA["H"],
                fonte="Cartão",
                data=t.data,
                valor=t.valor,
                descricao=t.descricao,
                nome=et.fornecedor_omie,
                titular=t.titular,
                nf=et.nf,
                acao=ACAO_CARTAO_COBERTO,
                obs=et.tipo_doc,
                cartao=t,
            )
        else:
            yield Divergencia(
                tipo="I",
                tipo_nome=TIPOS_DIVERGENCIA["I"],
                fonte="Cartão",
                data=t.data,
                valor=t.valor,
                descricao=t.descricao,
                titular=t.titular,
                categoria_sugerida=et.categoria_sugerida or settings.categoria_padrao,
                acao=ACAO_CARTAO_IMPORTAR,
                obs=t.parcela,
                cartao=t,
            )


def classify_divergencias(
    banco: list[LancamentoBanco],
    omie: list[LancamentoOmie],
    omie_cartao: list[LancamentoOmie],
    transacoes: list[TransacaoCartao],
    estado: EstadoConciliacao,
    divergencias: list[Divergencia],
) -> list[Divergencia]:
    """Acrescenta em `divergencias` tudo que não fechou e ordena por |valor| decrescente.

    - banco livre → A (ou T quando é débito de fatura)
    - Omie conta corrente livre → B, B*, G ou F
    - Omie cartão livre (só com fatura carregada) → B
    - match com valor diferente → C; com datas distantes → D
    - transação do cartão → H (coberta por NF) ou I (importável)
    """
    for b in banco:
        if estado.banco_livre(b):
            divergencias.append(_divergencia_banco(b))

    valores_cartao = {_valor_key(o.valor) for o in omie_cartao}
    valores_cartao.update(
        _valor_key(t.valor) for t in transacoes if not t.is_pagamento_fatura and not t.is_estorno
    )

    for o in omie:
        if estado.omie_livre(o):
            divergencias.append(_divergencia_omie(o, valores_cartao))

    if transacoes:
        for o in omie_cartao:
            if not estado.omie_livre(o) or "Transferência" in o.origem or "Transferência" in o.categoria:
                continue
            divergencias.append(Divergencia(
                tipo="B",
                tipo_nome=TIPOS_DIVERGENCIA["B"],
                fonte="Omie Cartão",
                data=o.data,
                valor=o.valor,
                descricao=o.observacoes or o.cliente_fornecedor,
                cnpj_cpf=o.cnpj_cpf,
                nome=o.cliente_fornecedor,
                situacao=o.situacao,
                origem=o.origem,
                acao=ACAO_INVESTIGAR,
                obs=o.observacoes,
                omie=o,
            ))

    divergencias.extend(_divergencias_match(estado))
    divergencias.extend(_divergencias_cartao(transacoes, estado))

    divergencias.sort(key=lambda d: abs(d.valor or 0), reverse=True)
    return divergencias

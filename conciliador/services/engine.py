"""
Orquestração da conciliação: parse → split Omie → camadas de match → fatura →
cartão x NF → duplicidades → divergências → contagens.

Duas entradas:
  - executar_conciliacao(banco_file, omie_file, cartao_file=None)  (async, arquivos enviados)
  - executar_conciliacao_from_data(banco, omie, ...)                (registros já parseados)

Cada execução cria um EstadoConciliacao novo; os registros parseados não são
alterados, então a mesma lista pode ser reconciliada mais de uma vez.
"""
import inspect
import logging
from collections import Counter
from datetime import date
from typing import Any, Optional

from conciliador.config import settings
from conciliador.models.categorias import CategoriaItem
from conciliador.models.lancamentos import (
    CartaoInfo,
    Divergencia,
    EstadoConciliacao,
    LancamentoBanco,
    LancamentoOmie,
    LinhaIgnorada,
    ResultadoConciliacao,
    TransacaoCartao,
)
from conciliador.models.regras import KEYWORDS_CONTA_CARTAO, MESES
from conciliador.services.classifier import classify_divergencias, detect_duplicates
from conciliador.services.matcher import (
    match_camada_a,
    match_camada_b,
    match_camada_c,
    match_camada_d,
    match_cartao_nf,
    match_fatura_cartao,
)
from conciliador.services.parsers import (
    csv_to_rows,
    csv_to_text,
    parse_banco,
    parse_cartao_from_text,
    parse_omie,
    rows_to_text,
    workbook_to_rows,
)

logger = logging.getLogger(__name__)


# ============================================================
# SPLIT / SELEÇÃO DE CONTA
# ============================================================


def is_conta_cartao(conta_corrente: str, keywords: tuple[str, ...] = KEYWORDS_CONTA_CARTAO) -> bool:
    conta = (conta_corrente or "").upper()
    return any(k in conta for k in keywords)


def split_omie(
    omie: list[LancamentoOmie], keywords: tuple[str, ...] = KEYWORDS_CONTA_CARTAO,
) -> tuple[list[LancamentoOmie], list[LancamentoOmie]]:
    """Separa os lançamentos Omie em (conta corrente, conta cartão)."""
    principal: list[LancamentoOmie] = []
    cartao: list[LancamentoOmie] = []
    for o in omie:
        (cartao if is_conta_cartao(o.conta_corrente, keywords) else principal).append(o)
    return principal, cartao


def selecionar_conta_corrente(
    banco: list[LancamentoBanco], omie: list[LancamentoOmie],
) -> tuple[list[LancamentoOmie], str, list[dict]]:
    """Mantém só a conta corrente cujos valores mais aparecem no extrato.

    Retorna (lançamentos da conta escolhida, nome da conta, contas excluídas).
    Com uma conta só (ou nenhuma), nada é excluído.
    """
    grupos: dict[str, list[LancamentoOmie]] = {}
    for o in omie:
        conta = o.conta_corrente.strip()
        if conta:
            grupos.setdefault(conta, []).append(o)

    if len(grupos) <= 1:
        conta = next(iter(grupos), "")
        return omie, conta, []

    valores_banco = {f"{abs(b.valor):.2f}" for b in banco}
    melhor_conta = ""
    melhor_score = -1
    for conta, entradas in grupos.items():
        score = sum(1 for o in entradas if f"{abs(o.valor):.2f}" in valores_banco)
        if score > melhor_score:
            melhor_conta, melhor_score = conta, score

    filtrado = [o for o in omie if o.conta_corrente.strip() == melhor_conta]
    excluidas = [
        {"nome": conta, "count": len(entradas)}
        for conta, entradas in grupos.items()
        if conta != melhor_conta
    ]
    logger.info("Conta corrente selecionada: %s (%d valores em comum); excluídas: %s",
                melhor_conta, melhor_score, [c["nome"] for c in excluidas])
    return filtrado, melhor_conta, excluidas


# ============================================================
# MÊS / ANO
# ============================================================


def detectar_mes_ano(banco: list[LancamentoBanco], hoje: Optional[date] = None) -> tuple[str, str]:
    """Mês/ano predominante no extrato; extrato vazio → mês/ano atual."""
    if not banco:
        hoje = hoje or date.today()
        return MESES[hoje.month - 1], str(hoje.year)

    contagem = Counter((b.data.month, b.data.year) for b in banco)
    # most_common mantém a ordem de inserção nos empates
    (mes, ano), _ = contagem.most_common(1)[0]
    return MESES[mes - 1], str(ano)


# ============================================================
# PIPELINE
# ============================================================


def _executar_pipeline(
    banco: list[LancamentoBanco],
    omie: list[LancamentoOmie],
    cartao_transacoes: list[TransacaoCartao],
    cartao_info: CartaoInfo,
    saldo_banco: Optional[float],
    saldo_omie: Optional[float],
    avisos: list[LinhaIgnorada],
    catalogo: Optional[tuple[CategoriaItem, ...]] = None,
) -> ResultadoConciliacao:
    estado = EstadoConciliacao()

    omie_principal, omie_cartao = split_omie(omie)

    conta_selecionada = ""
    contas_excluidas: list[dict] = []
    if settings.selecionar_conta_automatica:
        omie_principal, conta_selecionada, contas_excluidas = selecionar_conta_corrente(banco, omie_principal)

    match_camada_a(banco, omie_principal, estado)
    match_camada_b(banco, omie_principal, estado)
    match_camada_c(banco, omie_principal, estado)
    match_camada_d(banco, omie_principal, estado)
    match_fatura_cartao(banco, omie_principal + omie_cartao, estado)
    if cartao_transacoes:
        match_cartao_nf(cartao_transacoes, omie_cartao, estado, catalogo)

    divergencias: list[Divergencia] = detect_duplicates(omie_principal, estado)
    classify_divergencias(banco, omie_principal, omie_cartao, cartao_transacoes, estado, divergencias)

    camada_counts = dict(Counter(m.camada for m in estado.matches))
    div_counts = dict(Counter(d.tipo for d in divergencias))
    mes_label, ano_label = detectar_mes_ano(banco)

    resultado = ResultadoConciliacao(
        matches=tuple(estado.matches),
        divergencias=tuple(divergencias),
        banco=tuple(banco),
        omie=tuple(omie_principal),
        omie_cartao=tuple(omie_cartao),
        cartao_transacoes=tuple(cartao_transacoes),
        cartao_info=cartao_info,
        saldo_banco=saldo_banco,
        saldo_omie=saldo_omie,
        camada_counts=camada_counts,
        div_counts=div_counts,
        total_conciliados=len(estado.matches),
        total_divergencias=len(divergencias),
        contas_atraso=div_counts.get("B*", 0),
        cartao_importaveis=div_counts.get("I", 0),
        mes_label=mes_label,
        ano_label=ano_label,
        estado_banco=dict(estado.banco),
        estado_omie=dict(estado.omie),
        estado_cartao=dict(estado.cartao),
        avisos=tuple(avisos),
        conta_corrente_selecionada=conta_selecionada,
        contas_excluidas=tuple(contas_excluidas),
    )

    logger.info(
        "Conciliação %s/%s: banco=%d omie=%d (cartão=%d) cartão_transações=%d | "
        "matches=%d %s | divergências=%d %s | linhas ignoradas=%d",
        mes_label, ano_label, len(banco), len(omie_principal), len(omie_cartao), len(cartao_transacoes),
        resultado.total_conciliados, camada_counts, resultado.total_divergencias, div_counts, len(avisos),
    )
    return resultado


def executar_conciliacao_from_data(
    banco: list[LancamentoBanco],
    omie: list[LancamentoOmie],
    cartao_transacoes: Optional[list[TransacaoCartao]] = None,
    cartao_info: Optional[CartaoInfo] = None,
    saldo_banco: Optional[float] = None,
    saldo_omie: Optional[float] = None,
    catalogo: Optional[tuple[CategoriaItem, ...]] = None,
) -> ResultadoConciliacao:
    """Concilia registros já parseados (ex.: recarregados de outra fonte)."""
    return _executar_pipeline(
        list(banco),
        list(omie),
        list(cartao_transacoes or []),
        cartao_info or CartaoInfo(),
        saldo_banco,
        saldo_omie,
        avisos=[],
        catalogo=catalogo,
    )


async def _read_upload(upload_file: Any) -> bytes:
    content = upload_file.read()
    if inspect.isawaitable(content):
        content = await content
    return content or b""


def _is_csv(upload_file: Any) -> bool:
    return (getattr(upload_file, "filename", "") or "").lower().endswith(".csv")


def _upload_to_rows(upload_file: Any, content: bytes) -> list[list]:
    return csv_to_rows(content) if _is_csv(upload_file) else workbook_to_rows(content)


async def executar_conciliacao(banco_file: Any, omie_file: Any, cartao_file: Any = None) -> ResultadoConciliacao:
    """Concilia a partir dos arquivos enviados (extrato, Omie e, opcionalmente, fatura).

    Aceita UploadFile do FastAPI ou qualquer objeto com read() e filename.
    Arquivos .csv são lidos como texto separado por ";" (ou ","); qualquer outra
    extensão como planilha.
    """
    banco_bytes = await _read_upload(banco_file)
    parse_b = parse_banco(_upload_to_rows(banco_file, banco_bytes)) if banco_bytes else parse_banco([])

    omie_bytes = await _read_upload(omie_file)
    parse_o = parse_omie(_upload_to_rows(omie_file, omie_bytes)) if omie_bytes else parse_omie([])

    avisos: list[LinhaIgnorada] = parse_b.ignoradas + parse_o.ignoradas

    cartao_transacoes: list[TransacaoCartao] = []
    cartao_info = CartaoInfo()
    if cartao_file is not None:
        cartao_bytes = await _read_upload(cartao_file)
        if cartao_bytes:
            if _is_csv(cartao_file):
                text = csv_to_text(cartao_bytes)
            else:
                text = rows_to_text(workbook_to_rows(cartao_bytes))
            parse_c = parse_cartao_from_text(text)
            cartao_transacoes, cartao_info = parse_c.transacoes, parse_c.info
            avisos += parse_c.ignoradas

    return _executar_pipeline(
        parse_b.lancamentos,
        parse_o.lancamentos,
        cartao_transacoes,
        cartao_info,
        parse_b.saldo_anterior,
        parse_o.saldo_anterior,
        avisos,
    )

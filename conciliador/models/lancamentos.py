"""
Registros da conciliação banco x Omie x cartão.

Os lançamentos parseados são imutáveis. O estado de match (quem casou com quem,
em qual camada) fica em EstadoConciliacao, indexado pelo idx de cada registro.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union


# ─── Lançamentos parseados ───

@dataclass(frozen=True)
class LancamentoBanco:
    """Linha do extrato bancário."""
    idx: int
    data: date
    data_str: str
    descricao: str
    documento: str
    valor: float
    saldo: Optional[float]
    cnpj_cpf: str
    nome: str
    tipo: str


@dataclass(frozen=True)
class LancamentoOmie:
    """Linha do relatório de movimentação do Omie (conta corrente ou cartão)."""
    idx: int
    situacao: str
    data: date
    data_str: str
    cliente_fornecedor: str
    conta_corrente: str
    categoria: str
    valor: float
    tipo_doc: str = ""
    documento: str = ""
    nota_fiscal: str = ""
    parcela: str = ""
    origem: str = ""
    projeto: str = ""
    razao_social: str = ""
    cnpj_cpf: str = ""
    observacoes: str = ""


@dataclass(frozen=True)
class TransacaoCartao:
    """Linha da fatura do cartão de crédito."""
    idx: int
    data: date
    data_str: str
    descricao: str
    parcela: str
    valor: float
    titular: str = ""
    cartao: str = ""
    is_pagamento_fatura: bool = False
    is_estorno: bool = False


@dataclass(frozen=True)
class CartaoInfo:
    """Cabeçalho da fatura (uma vez por arquivo)."""
    vencimento: Optional[date] = None
    valor_total: float = 0.0
    situacao: str = ""
    despesas_brasil: float = 0.0
    despesas_exterior: float = 0.0
    pagamentos: float = 0.0


# ─── Resultado dos parsers ───

@dataclass(frozen=True)
class LinhaIgnorada:
    """Linha descartada por um parser (data/valor inválidos, linha de cartão já importada...)."""
    fonte: str
    linha: int
    motivo: str


@dataclass
class ResultadoParse:
    lancamentos: list
    saldo_anterior: Optional[float] = None
    ignoradas: list[LinhaIgnorada] = field(default_factory=list)


@dataclass
class ResultadoParseCartao:
    transacoes: list[TransacaoCartao]
    info: CartaoInfo
    ignoradas: list[LinhaIgnorada] = field(default_factory=list)


# Cada linha parseada é o lançamento ou o motivo do descarte
LinhaParseada = Union[LancamentoBanco, LancamentoOmie, TransacaoCartao, LinhaIgnorada]


# ─── Estado de match ───

@dataclass
class EstadoMatch:
    matched: bool = False
    tipo: Optional[str] = None
    camada: Optional[str] = None
    par_idx: Optional[int] = None


@dataclass
class EstadoCartao:
    matched_nf: bool = False
    omie_idx: Optional[int] = None
    fornecedor_omie: str = ""
    tipo_doc: str = ""
    nf: str = ""
    categoria_sugerida: str = ""


@dataclass(frozen=True)
class Match:
    camada: str
    tipo: str
    banco: LancamentoBanco
    omie: LancamentoOmie


# ─── Divergências ───

TIPOS_DIVERGENCIA: dict[str, str] = {
    "A":  "FALTANDO NO OMIE",
    "T":  "TRANSFERÊNCIA ENTRE CONTAS",
    "B":  "A MAIS NO OMIE",
    "B*": "CONTA EM ATRASO",
    "C":  "VALOR DIVERGENTE",
    "D":  "DATA DIVERGENTE",
    "E":  "DUPLICIDADE",
    "F":  "CONTA ERRADA (cartão)",
    "G":  "PREVISTO – NÃO REALIZADO",
    "H":  "CARTÃO - COBERTO POR NF",
    "I":  "CARTÃO - FALTANDO NO OMIE",
}


@dataclass(frozen=True)
class Divergencia:
    tipo: str
    tipo_nome: str
    fonte: str
    data: Optional[date]
    valor: float
    descricao: str = ""
    cnpj_cpf: str = ""
    nome: str = ""
    situacao: str = ""
    origem: str = ""
    acao: str = ""
    obs: str = ""
    confianca: str = ""
    valor_banco: Optional[float] = None
    valor_omie: Optional[float] = None
    diferenca: Optional[float] = None
    data_banco: Optional[date] = None
    data_omie: Optional[date] = None
    dias_diferenca: Optional[int] = None
    titular: str = ""
    categoria_sugerida: str = ""
    nf: str = ""
    banco: Optional[LancamentoBanco] = None
    omie: Optional[LancamentoOmie] = None
    cartao: Optional[TransacaoCartao] = None


class MatchInvalidoError(ValueError):
    """Tentativa de casar um lançamento que já participa de outro match."""


@dataclass
class EstadoConciliacao:
    """Estado mutável de uma execução: match de cada lançamento + lista de matches aceitos."""
    banco: dict[int, EstadoMatch] = field(default_factory=dict)
    omie: dict[int, EstadoMatch] = field(default_factory=dict)
    cartao: dict[int, EstadoCartao] = field(default_factory=dict)
    matches: list[Match] = field(default_factory=list)

    def estado_banco(self, b: LancamentoBanco) -> EstadoMatch:
        return self.banco.setdefault(b.idx, EstadoMatch())

    def estado_omie(self, o: LancamentoOmie) -> EstadoMatch:
        return self.omie.setdefault(o.idx, EstadoMatch())

    def estado_cartao(self, t: TransacaoCartao) -> EstadoCartao:
        return self.cartao.setdefault(t.idx, EstadoCartao())

    def banco_livre(self, b: LancamentoBanco) -> bool:
        return not self.estado_banco(b).matched

    def omie_livre(self, o: LancamentoOmie) -> bool:
        return not self.estado_omie(o).matched

    def marcar_match(self, b: LancamentoBanco, o: LancamentoOmie, camada: str, tipo: str) -> Match:
        eb = self.estado_banco(b)
        eo = self.estado_omie(o)
        if eb.matched or eo.matched:
            raise MatchInvalidoError(
                f"banco #{b.idx} ou omie #{o.idx} já conciliado (camada {camada}, {tipo})"
            )

        eb.matched, eb.tipo, eb.camada, eb.par_idx = True, tipo, camada, o.idx
        eo.matched, eo.tipo, eo.camada, eo.par_idx = True, tipo, camada, b.idx

        match = Match(camada=camada, tipo=tipo, banco=b, omie=o)
        self.matches.append(match)
        return match

    def marcar_omie(self, o: LancamentoOmie, tipo: str, camada: Optional[str] = None,
                    par_idx: Optional[int] = None) -> None:
        """Marca um lançamento Omie como resolvido sem par bancário (cartão, duplicidade)."""
        eo = self.estado_omie(o)
        if eo.matched:
            raise MatchInvalidoError(f"omie #{o.idx} já conciliado ({eo.tipo})")
        eo.matched, eo.tipo, eo.camada, eo.par_idx = True, tipo, camada, par_idx


@dataclass(frozen=True)
class ResultadoConciliacao:
    matches: tuple[Match, ...]
    divergencias: tuple[Divergencia, ...]
    banco: tuple[LancamentoBanco, ...]
    omie: tuple[LancamentoOmie, ...]
    omie_cartao: tuple[LancamentoOmie, ...]
    cartao_transacoes: tuple[TransacaoCartao, ...]
    cartao_info: CartaoInfo
    saldo_banco: Optional[float]
    saldo_omie: Optional[float]
    camada_counts: dict[str, int]
    div_counts: dict[str, int]
    total_conciliados: int
    total_divergencias: int
    contas_atraso: int
    cartao_importaveis: int
    mes_label: str
    ano_label: str
    estado_banco: dict[int, EstadoMatch] = field(default_factory=dict)
    estado_omie: dict[int, EstadoMatch] = field(default_factory=dict)
    estado_cartao: dict[int, EstadoCartao] = field(default_factory=dict)
    avisos: tuple[LinhaIgnorada, ...] = ()
    conta_corrente_selecionada: str = ""
    contas_excluidas: tuple[dict, ...] = ()

    @property
    def pct_conciliados(self) -> float:
        if not self.banco:
            return 0.0
        conciliados = sum(1 for b in self.banco if self.estado_banco.get(b.idx, EstadoMatch()).matched)
        return round(100.0 * conciliados / len(self.banco), 1)

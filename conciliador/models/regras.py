"""
Tabelas de regras da conciliação (extrato Sicredi, relatório Omie, fatura de cartão).

São dados, não fluxo: as funções de normalização/parsing recebem estas tabelas
como parâmetro default e podem ser chamadas com variações nos testes.
"""

# ---------------------------------------------------------------------------
# Prefixos do histórico bancário removidos para extrair o nome do favorecido
# ---------------------------------------------------------------------------

PREFIXOS_BANCO: tuple[str, ...] = (
    "PAGAMENTO PIX",
    "RECEBIMENTO PIX",
    "LIQUIDACAO BOLETO",
    "TED",
    "PASSAGEM PEDAGIO",
    "DEB. FOLHA PAGTO",
    "DEB.CTA.FATURA",
    "DEBITO CONVENIOS",
    "TRANSF ENTRE CONTAS",
    "CESTA DE RELACIONAMENTO",
    "INTEGR.CAPITAL SUBSCRITO",
    "LIBERACAO CREDITO",
    "TARIFA",
    "PGTO SEFA PR",
    "MENSALID TAG",
    "CREDITO CONSORCIO",
)

# ---------------------------------------------------------------------------
# Classificação do histórico bancário (ordem importa: primeira regra vence)
# ---------------------------------------------------------------------------
# Cada regra: (modo, padrões, tipo). modo "prefixo" testa startswith, "contem"
# testa substring. Texto comparado em maiúsculas.

REGRAS_CLASSIFICACAO_BANCO: list[tuple[str, tuple[str, ...], str]] = [
    ("prefixo", ("PAGAMENTO PIX",),                           "PIX_ENVIADO"),
    ("prefixo", ("RECEBIMENTO PIX",),                         "PIX_RECEBIDO"),
    ("prefixo", ("TED",),                                     "TED"),
    ("prefixo", ("LIQUIDACAO BOLETO",),                       "BOLETO"),
    ("prefixo", ("PASSAGEM PEDAGIO",),                        "PEDAGIO"),
    ("contem",  ("DEB. FOLHA PAGTO", "DEB.FOLHA PAGTO"),      "FOLHA"),
    ("contem",  ("DEB.CTA.FATURA",),                          "FATURA_CARTAO"),
    ("contem",  ("DEBITO CONVENIOS", "DÉBITO AUTOMÁTICO"),    "DEBITO_AUTOMATICO"),
    ("contem",  ("TRANSF ENTRE CONTAS",),                     "TRANSFERENCIA"),
    ("contem",  ("CESTA",),                                   "TARIFA"),
    ("contem",  ("INTEGR.CAPITAL",),                          "INTEGRALIZACAO"),
    ("contem",  ("LIBERACAO CREDITO",),                       "CREDITO"),
    ("contem",  ("PGTO SEFA",),                               "IMPOSTO"),
    ("contem",  ("MENSALID TAG",),                            "TAG"),
    ("contem",  ("CREDITO CONSORCIO",),                       "CONSORCIO"),
    ("contem",  ("TARIFA",),                                  "TARIFA"),
]

TIPO_BANCO_PADRAO = "OUTROS"

# Termos do histórico que indicam débito da fatura do cartão na conta corrente
KEYWORDS_FATURA_BANCO: tuple[str, ...] = ("DEB.CTA.FATURA", "FATURA CARTAO", "FATURA CARTÃO")

# ---------------------------------------------------------------------------
# Compatibilidade de nomes
# ---------------------------------------------------------------------------

STOPWORDS_NOME: frozenset[str] = frozenset({
    "LTDA", "LTDA.", "S.A.", "S.A", "S/A", "EIRELI", "EPP", "ME",
    "DO", "DE", "DA", "DOS", "DAS", "E",
})

STOPWORDS_NOME_CARTAO: frozenset[str] = frozenset({
    "LTDA", "S.A.", "EIRELI", "EPP", "ME",
    "DO", "DE", "DA", "DOS", "DAS", "E",
})

# ---------------------------------------------------------------------------
# Omie
# ---------------------------------------------------------------------------

# Conta corrente do Omie que pertence ao cartão de crédito
KEYWORDS_CONTA_CARTAO: tuple[str, ...] = ("CARTAO", "CARTÃO", "CREDIT CARD")

# Lançamentos que representam o pagamento da fatura (saída da conta corrente)
KEYWORDS_OMIE_FATURA: tuple[str, ...] = ("CARTAO DE CREDITO", "CARTÃO DE CRÉDITO")
ORIGENS_OMIE_TRANSFERENCIA: tuple[str, ...] = ("Saída de Transferência", "Débito de Transferência")

# Documento gerado por importação anterior da fatura (CARTAO-2024-001...)
PADRAO_DOC_CARTAO_IMPORTADO = r"^CARTAO-\d{4}-\d{3}"

# Mapeamento do cabeçalho do relatório Omie → campo. Ordem importa: RAZÃO SOCIAL
# precisa vir antes de CLIENTE ("Cliente/Fornecedor (Razão Social)").
# Cada regra: (campo, iguais, contém)
MAPA_COLUNAS_OMIE: list[tuple[str, tuple[str, ...], tuple[str, ...]]] = [
    ("situacao",     ("SITUACAO",),        ("SITUAÇ",)),
    ("data",         ("DATA",),            ("DATA LANÇ", "DATA LANC")),
    ("razao_social", (),                   ("RAZÃO", "RAZAO", "RAZÃ")),
    ("cliente",      (),                   ("CLIENTE", "FORNECEDOR")),
    ("conta",        ("CONTA",),           ("CONTA CORRENTE",)),
    ("categoria",    (),                   ("CATEGORIA",)),
    ("valor",        ("VALOR",),           ("VALOR",)),
    ("saldo",        (),                   ("SALDO",)),
    ("tipo_doc",     (),                   ("TIPO DOC", "TIPO DE DOC")),
    ("documento",    ("DOCUMENTO", "DOC"), ("N DO DOC", "NUMERO DO DOC")),
    ("nota_fiscal",  ("NF", "NOTA"),       ("NOTA FISCAL", "NF-E")),
    ("parcela",      (),                   ("PARCELA",)),
    ("origem",       (),                   ("ORIGEM",)),
    ("projeto",      (),                   ("PROJETO",)),
    ("cnpj_cpf",     (),                   ("CNPJ", "CPF")),
    ("observacoes",  (),                   ("OBSERV",)),
]

# Layout padrão do export Omie quando o cabeçalho não é encontrado
COLUNAS_OMIE_PADRAO: dict[str, int] = {
    "situacao": 0, "data": 1, "cliente": 2, "conta": 3, "categoria": 4,
    "valor": 5, "saldo": 6, "tipo_doc": 9, "documento": 10, "nota_fiscal": 11,
    "parcela": 12, "origem": 14, "projeto": 17, "razao_social": 18, "cnpj_cpf": 19,
    "observacoes": 20,
}

# ---------------------------------------------------------------------------
# Extrato Sicredi
# ---------------------------------------------------------------------------

# Primeira linha de lançamentos; a linha anterior traz o saldo anterior na coluna 4
LINHA_INICIAL_BANCO = 10
COLUNA_SALDO_BANCO = 4

# Primeira coluna com um destes termos encerra a lista de lançamentos
FIM_LANCAMENTOS_BANCO: tuple[str, ...] = ("Saldo", "Lançamentos Futuros", "Vencimento", "Custo")

# ---------------------------------------------------------------------------
# Fatura Sicredi (CSV)
# ---------------------------------------------------------------------------

# Rótulo da linha de cabeçalho → campo de CartaoInfo
ROTULOS_INFO_CARTAO: list[tuple[str, str]] = [
    ("Data de Vencimento",             "vencimento"),
    ("Valor Total",                    "valor_total"),
    ("Situa",                          "situacao"),
    ("Despesas / Debitos no Brasil",   "despesas_brasil"),
    ("Despesas / Debitos no exterior", "despesas_exterior"),
    ("Pagamentos / Creditos",          "pagamentos"),
]

LINHAS_INFO_CARTAO = 20
MARCADOR_PAGAMENTO_FATURA = "Pag Fat Deb Cc"
MARCADOR_PAGAMENTO_FATURA_CURTO = "Pag Fat"

# ---------------------------------------------------------------------------
# Observações do Omie usadas na classificação de divergências
# ---------------------------------------------------------------------------

OBS_NFE_AUTOMATICA: tuple[str, ...] = ("RECEBIMENTO DA NF", "INCLUSÃO PELA NF")
OBS_CTE: tuple[str, ...] = ("CT-E", "RECEBIMENTO DO CT")

MESES: tuple[str, ...] = (
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
)

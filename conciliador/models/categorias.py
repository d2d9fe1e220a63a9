"""
Catálogo de categorias do Omie usado para sugerir a categoria de compras no cartão.

A sugestão é uma busca por palavra-chave na descrição da transação (primeira
categoria ativa com keyword contida vence). O catálogo é dado de configuração:
suggest_categoria aceita outro catálogo e outra categoria padrão.
"""
from dataclasses import dataclass, field
from typing import Optional

from conciliador.config import settings


@dataclass(frozen=True)
class CategoriaItem:
    nome: str
    grupo: str
    conta_dre: str = ""
    keywords: tuple[str, ...] = field(default_factory=tuple)
    ativa: bool = True


# Keywords pré-populadas por categoria (nomes iguais aos do plano de contas Omie)
KEYWORDS_SEED: dict[str, tuple[str, ...]] = {
    "COMBUSTIVEIS": ("POSTO", "COMBUST", "SHELL", "IPIRANGA", "GASOLINA", "BR MANIA", "PETROBRAS", "DIESEL"),
    "ALIMENTACAO (OPERACAO)": ("RESTAURANTE", "LANCHONETE", "LANCHES", "PADARIA", "PANIFICADORA",
                               "MARMITEX", "REFEICAO", "COMIDA", "GRACIOSA", "TIBAGI"),
    "ALIMENTACAO (DIRETORIA)": ("OUTBACK", "MADERO", "BARBACOA", "COCO BAMBU", "BUFFALO RANCH",
                                "CAMPODORO", "MADALOSSO"),
    "ALIMENTACAO (ADMINISTRATIVO)": ("IFOOD", "RAPPI", "UBER EATS"),
    "MERCADO": ("MERCADO", "SUPERMERCADO", "HIPERMERCADO", "ZANETTI", "CONDOR", "MUFFATO", "ATACADAO"),
    "TELEFONIA E INTERNET": ("VIVO", "CLARO", "TIM", "TELEFONICA", "INTERNET", "TELECOM"),
    "MATERIAIS APLICADOS NA PRESTAÇÃO DE SERVIÇOS": ("MAT CONSTR", "ELETRICA", "HIDRAULICA", "FERRAGEM",
                                                     "LEROY", "TELHA", "CIMENTO"),
    "MANUTENCAO DE VEICULOS": ("BORRACHARIA", "MECANICA", "PNEU", "AUTO CENTER", "LAVA CAR", "OFICINA", "AUTOPECA"),
    "PEDAGIOS": ("PEDAGIO", "ECOVIA", "RODONORTE", "EPR", "ARTERIS", "ECORODOVIAS", "CCR"),
    "FERRAMENTAS": ("FERRAMENT", "MAKITA", "BOSCH", "DEWALT", "STANLEY"),
    "UNIFORMES E EPIS": ("EPI", "UNIFORME", "BOTA", "CAPACETE", "LUVA", "PORTO EPI"),
    "SOFTWARES DE ENGENHARIA / OPERACIONAL": ("SOFTWARE", "LICENCA", "AUTODESK", "AUTOCAD", "REVIT"),
    "CURSOS E TREINAMENTOS OPERACIONAIS": ("CURSO", "TREINAMENTO", "CAPACITACAO", "UDEMY", "ALURA"),
    "DESPESAS COM HOSPEDAGENS": ("HOTEL", "POUSADA", "HOSTEL", "AIRBNB", "BOOKING"),
    "TRANSPORTE URBANO (TÁXI, UBER)": ("UBER", "TAXI", "99POP", "99TAXI", "CABIFY"),
    "ESTACIONAMENTOS": ("ESTACIONAMENTO", "PARK"),
    "SEGUROS DE VEICULOS": ("PORTO SEGURO", "SEGURO AUTO"),
    "EQUIPAMENTOS DE INFORMÁTICA": ("NOTEBOOK", "COMPUTADOR", "MONITOR", "IMPRESSORA"),
}

# (nome, grupo, conta do DRE): só as categorias que recebem sugestão automática
_CATEGORIAS_SEED: list[tuple[str, str, str]] = [
    ("MATERIAIS APLICADOS NA PRESTAÇÃO DE SERVIÇOS", "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("SOFTWARES DE ENGENHARIA / OPERACIONAL",        "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("COMBUSTIVEIS",                                 "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("UNIFORMES E EPIS",                             "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("ALIMENTACAO (ADMINISTRATIVO)",                 "Despesas Diretas", "(-) - Despesas Administrativas"),
    ("ALIMENTACAO (OPERACAO)",                       "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("CURSOS E TREINAMENTOS OPERACIONAIS",           "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("DESPESAS COM HOSPEDAGENS",                     "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("ESTACIONAMENTOS",                              "Despesas Diretas", "(-) - Custo dos Serviços Prestados"),
    ("TELEFONIA E INTERNET",                         "Despesas Administrativas", "(-) - Despesas Administrativas"),
    ("ALIMENTACAO (DIRETORIA)",                      "Despesas Administrativas", "(-) - Despesas Administrativas"),
    ("EQUIPAMENTOS DE INFORMÁTICA",                  "Investimento", "(-) - Ativos"),
    ("FERRAMENTAS",                                  "Investimento", ""),
    ("MANUTENCAO DE VEICULOS",                       "Outras Despesas", ""),
    ("TRANSPORTE URBANO (TÁXI, UBER)",               "Outras Despesas", ""),
    ("SEGUROS DE VEICULOS",                          "Outras Despesas", ""),
    ("PEDAGIOS",                                     "Outras Despesas", ""),
    ("MERCADO",                                      "Outras Despesas", ""),
]

CATALOGO_PADRAO: tuple[CategoriaItem, ...] = tuple(
    CategoriaItem(nome=nome, grupo=grupo, conta_dre=conta_dre, keywords=KEYWORDS_SEED.get(nome, ()))
    for nome, grupo, conta_dre in _CATEGORIAS_SEED
)


def suggest_categoria(
    descricao: str,
    catalogo: Optional[tuple[CategoriaItem, ...]] = None,
    padrao: Optional[str] = None,
) -> str:
    """Sugere a categoria Omie para a descrição de uma compra no cartão."""
    catalogo = CATALOGO_PADRAO if catalogo is None else catalogo
    padrao = padrao or settings.categoria_padrao
    if not descricao:
        return padrao

    desc_upper = descricao.upper().strip()
    for cat in catalogo:
        if not cat.ativa or not cat.keywords:
            continue
        for kw in cat.keywords:
            if kw and kw.upper() in desc_upper:
                return cat.nome

    return padrao


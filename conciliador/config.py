from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Matching tolerances
    tolerancia_valor: float = 0.01
    janela_camada_a_cnpj: int = 1
    janela_camada_a_obs: int = 3
    janela_camada_b: int = 3
    janela_camada_b_cnpj: int = 5
    janela_camada_c: int = 5
    tolerancia_pct_valor_proximo: float = 0.05
    janela_camada_d: int = 30
    score_minimo_camada_d: int = 4
    janela_fatura_cartao: int = 5
    janela_cartao_nf: int = 10

    # Divergence classification
    dias_data_divergente: int = 3
    limite_conta_errada: float = 500.0
    limite_nfe_parcelada: float = 400.0

    # Card import sheet (ERP "contas a pagar" layout)
    categoria_padrao: str = "DESPESAS A IDENTIFICAR"
    conta_corrente_cartao: str = "CARTAO DE CREDITO"

    # When the main ERP subset spans several accounts, keep only the one that
    # best overlaps the bank ledger
    selecionar_conta_automatica: bool = False

    # Server
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

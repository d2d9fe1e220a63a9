"""
Conciliação banco x Omie x cartão via upload.

POST /conciliacao                           (JSON com matches, divergências e resumo)
POST /conciliacao/divergencias.xlsx         (planilha de divergências)
POST /conciliacao/importacao-cartao.xlsx    (planilha de importação da fatura no Omie)

Campos multipart: banco (extrato XLS/XLSX), omie (movimentação XLSX) e,
opcionalmente, cartao (fatura CSV ou planilha).
"""
import io
import logging
import zipfile
from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from conciliador.models.lancamentos import ResultadoConciliacao
from conciliador.services.engine import executar_conciliacao
from conciliador.services.outputs import (
    gerar_xlsx_divergencias,
    gerar_xlsx_importacao_cartao,
    nome_arquivo,
    resultado_to_dict,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/conciliacao")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _conciliar(banco: UploadFile, omie: UploadFile, cartao: Optional[UploadFile]) -> ResultadoConciliacao:
    try:
        return await executar_conciliacao(banco, omie, cartao)
    except (ValueError, zipfile.BadZipFile) as e:
        logger.warning("Arquivo inválido (banco=%s omie=%s cartao=%s): %s",
                       banco.filename, omie.filename, cartao.filename if cartao else None, e)
        raise HTTPException(status_code=400, detail=f"Arquivo inválido: {e}")


def _xlsx_response(buffer: io.BytesIO, filename: str) -> StreamingResponse:
    buffer.seek(0)
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("")
async def conciliar(
    banco: UploadFile = File(..., description="Extrato bancário (XLS/XLSX)"),
    omie: UploadFile = File(..., description="Movimentação financeira do Omie (XLSX)"),
    cartao: Optional[UploadFile] = File(None, description="Fatura do cartão (CSV ou planilha)"),
):
    resultado = await _conciliar(banco, omie, cartao)
    return resultado_to_dict(resultado)


@router.post("/divergencias.xlsx")
async def divergencias_xlsx(
    banco: UploadFile = File(...),
    omie: UploadFile = File(...),
    cartao: Optional[UploadFile] = File(None),
):
    resultado = await _conciliar(banco, omie, cartao)
    buffer = io.BytesIO()
    if not gerar_xlsx_divergencias(resultado, buffer):
        raise HTTPException(status_code=404, detail="Nenhuma divergência encontrada")
    return _xlsx_response(buffer, nome_arquivo(resultado, "divergencias"))


@router.post("/importacao-cartao.xlsx")
async def importacao_cartao_xlsx(
    banco: UploadFile = File(...),
    omie: UploadFile = File(...),
    cartao: Optional[UploadFile] = File(None),
):
    resultado = await _conciliar(banco, omie, cartao)
    buffer = io.BytesIO()
    if not gerar_xlsx_importacao_cartao(resultado, buffer):
        raise HTTPException(status_code=404, detail="Nenhuma transação de cartão para importar")
    return _xlsx_response(buffer, nome_arquivo(resultado, "importacao_cartao"))

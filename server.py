import logging
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from classes.backend import Backend
from classes.json_parser import UnparseableResponseError
from classes.llm_client import MaxRetryErrorsException
from classes.response_normalizer import EmptyAnalysisResponseError

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n",
)
logger = logging.getLogger("spotmatik_backend")

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

app = FastAPI(title="SpotMatik Semantic Model Optimizer")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class TMLRequest(BaseModel):
    tml_content: str


class AnalyzeRequest(BaseModel):
    tml_content: str
    provider: str = "openai"
    mode: str = "standard"
    business_questions: Optional[str] = None


class ReportRequest(BaseModel):
    results: Dict[str, Any]
    tml_content: Optional[str] = None


_backend: Optional[Backend] = None


def get_backend() -> Backend:
    global _backend
    if _backend is None:
        _backend = Backend()
    return _backend


def _dispatch(backend: Backend, request_type: str, payload: dict) -> Any:
    try:
        response = backend._process_request_data({"type": request_type, "payload": payload})
    except (MaxRetryErrorsException, UnparseableResponseError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    except (ValueError, EmptyAnalysisResponseError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    if response.get("status") != "success":
        raise HTTPException(status_code=400, detail=response.get("message"))
    return response.get("data")


@app.get("/providers")
async def get_providers(backend: Backend = Depends(get_backend)):
    return _dispatch(backend, "providers", {})


@app.post("/tml/structure")
async def tml_structure(req: TMLRequest, backend: Backend = Depends(get_backend)):
    return _dispatch(backend, "parse_tml", req.model_dump())


@app.post("/analyze")
def analyze(req: AnalyzeRequest, backend: Backend = Depends(get_backend)):
    # sync handler: the LLM call blocks, FastAPI runs it in the threadpool
    return _dispatch(backend, "analyze", req.model_dump())


@app.post("/report/markdown", response_class=PlainTextResponse)
async def report_markdown(req: ReportRequest, backend: Backend = Depends(get_backend)):
    return _dispatch(backend, "report_markdown", req.model_dump())


@app.post("/report/docx")
async def report_docx(req: ReportRequest, backend: Backend = Depends(get_backend)):
    return Response(
        content=_dispatch(backend, "report_docx", req.model_dump()),
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="spotter-optimization-report.docx"'},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

import logging
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool

from .config import LOG_LEVEL
from .errors import SandboxInfrastructureError
from .executor import CodeSandbox
from .orchestrator import TestOrchestrator
from .schemas import ExecutionRequest, ExecutionResult, LanguageInfo, SystemInfo, TestReport, TestSuiteRequest

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title='Code Sandbox')
sandbox = CodeSandbox()
orchestrator = TestOrchestrator(sandbox)


async def _call(func, *args):
    try:
        return await run_in_threadpool(func, *args)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SandboxInfrastructureError as e:
        logger.error('sandbox unavailable: %s', e)
        raise HTTPException(status_code=503, detail='sandbox unavailable')
    except Exception:
        logger.exception('execution error')
        raise HTTPException(status_code=500, detail='execution error')


@app.post('/execute', response_model=ExecutionResult)
async def execute_code(req: ExecutionRequest):
    return await _call(sandbox.execute, req.code, req.language, req.input)


@app.post('/run-tests', response_model=TestReport)
async def run_tests(req: TestSuiteRequest):
    return await _call(orchestrator.run_test_suite, req.code, req.language, req.test_cases)


@app.get('/languages', response_model=List[LanguageInfo])
async def languages():
    return sandbox.supported_languages()


@app.get('/health', response_model=SystemInfo)
async def health():
    return sandbox.system_info()

import logging

from fastapi import FastAPI

from app.routers.assessment import router as assessment_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="MBTI Assessment API")

app.include_router(assessment_router)


@app.get("/")
def root():
    return {"msg": "MBTI assessment service is running."}

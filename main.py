import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database import test_connection
from errors import register_error_handlers
from migrate import ensure_schema
from router import admin, bookings, terms_route


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 建立資料表與重疊約束
    ensure_schema()
    logging.info(f"🚀 CORS allowlist: {config.CORS_ORIGINS}")
    yield


app = FastAPI(title="Venue Booking API", lifespan=lifespan)

# CORS 設定（一定要在任何路由之前）
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
)

register_error_handlers(app)

# 掛載路由
app.include_router(bookings.router, prefix="/api")
app.include_router(terms_route.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
# 不帶 /api 前綴也可以呼叫
app.include_router(bookings.router)
app.include_router(terms_route.router)
app.include_router(admin.router)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/healthz/db")
def healthz_db():
    try:
        test_connection()
        return {"ok": True}
    except Exception as e:
        logging.error(f"❌ 資料庫連線失敗: {e}")
        return {"ok": False, "error": "db_unavailable"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)

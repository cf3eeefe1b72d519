import hashlib
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import FileResponse
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

# --- IMPORTAÇÃO DOS MODELOS ---
# Precisam estar importados antes do init_db para as tabelas existirem
from src.models.base import utc_now
from src.models.project import Project, ProjectCreate, ProjectUpdate
from src.models.user import User, UserCreate, UserLogin, UserPublic

# --- IMPORTAÇÕES DO BACKEND ---
from backend.database import init_db, get_session
from backend.storage import BlobStorage, InvalidPathError

logger = logging.getLogger("Backend")

NOT_FOUND = {"code": "not_found", "message": "Projeto não encontrado"}

_storage = None

def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        _storage = BlobStorage()
    return _storage

def hash_password(password: str) -> str:
    """Gera hash SHA256 com salt para armazenamento seguro"""
    salt = os.getenv("AUTH_SALT", "lightplan_segredo_dev")
    return hashlib.sha256(f"{password}{salt}".encode()).hexdigest()


class SignRequest(SQLModel):
    path: str
    expires_in: int = 3600


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield

app = FastAPI(title="LightPlan - Servidor de Sincronização", lifespan=lifespan)

@app.get("/")
async def root():
    return {
        "status": "online",
        "time": datetime.now(timezone.utc).isoformat()
    }

# --- AUTENTICAÇÃO ---

@app.post("/auth/signup", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def signup(payload: UserCreate, session: AsyncSession = Depends(get_session)):
    existing = await session.exec(select(User).where(User.email == payload.email))
    if existing.first():
        raise HTTPException(status_code=409, detail="E-mail já cadastrado")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user

@app.post("/auth/login", response_model=UserPublic)
async def login(payload: UserLogin, session: AsyncSession = Depends(get_session)):
    result = await session.exec(select(User).where(User.email == payload.email))
    user = result.first()
    if not user or user.password_hash != hash_password(payload.password):
        raise HTTPException(status_code=401, detail="E-mail ou senha inválidos")
    return user

# --- PROJETOS ---

@app.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate, session: AsyncSession = Depends(get_session)):
    project = Project.model_validate(payload.model_dump())
    session.add(project)
    await session.commit()
    await session.refresh(project)
    logger.info(f"Projeto {project.id} criado para {project.user_id}")
    return project

@app.patch("/projects/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    session: AsyncSession = Depends(get_session)
):
    project = await session.get(Project, project_id)
    if not project:
        # O cliente trata este código como conflito
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(project, key, value)
    project.updated_at = utc_now()

    try:
        session.add(project)
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Erro no update de {project_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await session.refresh(project)
    return project

@app.get("/projects", response_model=List[Project])
async def list_projects(user_id: str, session: AsyncSession = Depends(get_session)):
    statement = (
        select(Project)
        .where(Project.user_id == user_id)
        .order_by(Project.created_at.desc())
    )
    result = await session.exec(statement)
    return result.all()

@app.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, session: AsyncSession = Depends(get_session)):
    project = await session.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    await session.delete(project)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- STORAGE (imagens) ---

@app.post("/storage/sign")
async def sign_object(
    payload: SignRequest,
    request: Request,
    storage: BlobStorage = Depends(get_storage)
):
    try:
        if not storage.exists(payload.path):
            raise HTTPException(status_code=404, detail="Objeto não encontrado")
    except InvalidPathError:
        raise HTTPException(status_code=400, detail="Caminho inválido")

    params = storage.sign(payload.path, payload.expires_in)
    url = request.url_for("read_object", path=payload.path)
    return {"signed_url": f"{url}?expires={params['expires']}&signature={params['signature']}"}

@app.get("/storage/object/{path:path}", name="read_object")
async def read_object(
    path: str,
    expires: int,
    signature: str,
    storage: BlobStorage = Depends(get_storage)
):
    if not storage.verify(path, expires, signature):
        raise HTTPException(status_code=403, detail="Assinatura inválida ou expirada")
    try:
        target = storage.resolve(path)
    except InvalidPathError:
        raise HTTPException(status_code=400, detail="Caminho inválido")
    if not target.is_file():
        raise HTTPException(status_code=404, detail="Objeto não encontrado")
    return FileResponse(target)

@app.put("/storage/{path:path}")
async def upload_object(path: str, request: Request, storage: BlobStorage = Depends(get_storage)):
    content = await request.body()
    try:
        storage.save(path, content)
    except InvalidPathError:
        raise HTTPException(status_code=400, detail="Caminho inválido")
    return {"path": path}

@app.delete("/storage/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_object(path: str, storage: BlobStorage = Depends(get_storage)):
    try:
        removed = storage.remove(path)
    except InvalidPathError:
        raise HTTPException(status_code=400, detail="Caminho inválido")
    if not removed:
        raise HTTPException(status_code=404, detail="Objeto não encontrado")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

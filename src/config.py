import os
from dotenv import load_dotenv

# Carrega as variáveis do arquivo .env (se existir)
load_dotenv()

# Servidor de sincronização
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "10"))

# Banco local (cache offline)
LOCAL_DB_PATH = os.getenv("LOCAL_DB_PATH", "lightplan.db")

# Janela mínima entre dois pulls completos
PULL_COOLDOWN_SECONDS = int(os.getenv("PULL_COOLDOWN_SECONDS", "300"))

# Tempo que o indicador de sync mostra sucesso/erro antes de voltar a "idle"
SUCCESS_DISPLAY_SECONDS = float(os.getenv("SUCCESS_DISPLAY_SECONDS", "2"))
ERROR_DISPLAY_SECONDS = float(os.getenv("ERROR_DISPLAY_SECONDS", "5"))

"""
Servicio centralizado para números secuenciales.
Pedidos, créditos, solicitudes de liquidación y borderôs toman su número de
FolioCounter, nunca de un max()+1 sobre la tabla.
"""
from sqlalchemy.orm import Session

from settlement.models.folio_counter import FolioCounter


PREFIX_MAP = {
    'PEDIDO': 'PED',
    'CREDITO': 'CR',
    'SOLICITACAO': 'SOL',
    'BORDERO': 'BOR',
}


def get_next_folio_seq(db: Session, tenant_id: int, tipo: str) -> int:
    """
    Obtiene el siguiente número de secuencia para un tipo de folio.
    Crea el contador si no existe.

    Usa with_for_update() para que dos transacciones concurrentes nunca
    reciban el mismo número. NO hace commit: el número queda reservado
    cuando el caller hace commit de su transacción.

    Args:
        db: Sesión de base de datos
        tenant_id: ID del tenant
        tipo: Tipo de folio (ver PREFIX_MAP)

    Returns:
        Número de secuencia actual (antes de incrementar)
    """
    if tipo not in PREFIX_MAP:
        raise ValueError(f"Tipo de folio inválido: {tipo}")

    counter = db.query(FolioCounter).filter(
        FolioCounter.tenant_id == tenant_id,
        FolioCounter.tipo == tipo
    ).with_for_update().first()

    if not counter:
        counter = FolioCounter(
            tenant_id=tenant_id,
            tipo=tipo,
            next_seq=1
        )
        db.add(counter)
        db.flush()

    current_seq = counter.next_seq
    counter.next_seq += 1
    db.flush()

    return current_seq


def format_folio(tipo: str, seq: int) -> str:
    """Formato {PREFIX}-{SEQ:06d}, ej: 'CR-000012'"""
    return f"{PREFIX_MAP[tipo]}-{str(seq).zfill(6)}"


def generate_folio(db: Session, tenant_id: int, tipo: str) -> str:
    """
    Genera un folio único con formato: {PREFIX}-{SEQ:06d}

    Returns:
        Folio generado (ej: 'PED-000001', 'BOR-000001')
    """
    seq = get_next_folio_seq(db, tenant_id, tipo)
    return format_folio(tipo, seq)

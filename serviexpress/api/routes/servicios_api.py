# serviexpress/api/routes/servicios_api.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from serviexpress.core.errors import ConflictError, DomainError, NotFoundError
from serviexpress.db.base import get_db
from serviexpress.repositories import services as services_repo
from serviexpress.schemas.service import ServiceCreate, ServiceResponse
from serviexpress.services import catalog

router = APIRouter(prefix="/api/servicios", tags=["api-servicios"])


@router.get("", response_model=List[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    return services_repo.list_all(db)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: int, db: Session = Depends(get_db)):
    service = services_repo.get(db, service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Servicio no encontrado")
    return service


# Create, linking provider / client by id
@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(payload: ServiceCreate, db: Session = Depends(get_db)):
    try:
        return catalog.create_service(db, payload, provider_id=payload.provider_id, client_id=payload.client_id)
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except DomainError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{service_id}")
def delete_service(service_id: int, db: Session = Depends(get_db)):
    try:
        catalog.delete_service(db, service_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"message": "Servicio eliminado"}

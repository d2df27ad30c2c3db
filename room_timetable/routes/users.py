# room_timetable/routes/users.py
from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.orm import Session
from room_timetable import models, schemas, database, auth


router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

def _create_user(user: schemas.UserCreate, db: Session, is_admin: bool) -> models.User:
    existing_user = db.query(models.User).filter(models.User.email == user.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = models.User(
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        password=auth.get_password_hash(user.password),
        is_admin=is_admin
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user

# User Registration (Normal User)
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(user: schemas.UserCreate, db: Session = Depends(database.get_db)):
    new_user = _create_user(user, db, is_admin=False)
    return {"message": "User registered", "id": new_user.id}

# Admin Registration (Admin Only - Protected)
@router.post("/admin/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth.verify_admin_user)])
def register_admin(user: schemas.UserCreate, db: Session = Depends(database.get_db)):
    new_admin = _create_user(user, db, is_admin=True)
    return {"message": f"Admin {new_admin.email} registered successfully", "id": new_admin.id}

# Login (JWT)
@router.post("/login")
def login_user(user: schemas.UserLogin, db: Session = Depends(database.get_db)):
    db_user = db.query(models.User).filter(models.User.email == user.email).first()
    if not db_user or not auth.verify_password(user.password, db_user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    access_token = auth.create_access_token(db_user)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "username": db_user.username,
        "full_name": db_user.full_name,
        "email": db_user.email
    }

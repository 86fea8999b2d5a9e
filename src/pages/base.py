from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated, Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, ValidationInfo, field_validator

from common.api import ApiError, ApiGateway
from common.formatting import Column, get_path, render_table
from common.notifications import Notifier


logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Confirmer = Callable[[str], bool]


class FormValidationError(ValueError):
    """A form failed local validation; nothing was sent to the server."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def coerce_id(value: Any) -> Optional[int]:
    """Normalize a foreign key from a selector: blank → None, "12"/12.0 → 12."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("id must be numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError("id must be an integer")
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"unsupported id value: {value!r}")


IdField = Annotated[Optional[int], BeforeValidator(coerce_id)]


class FormModel(BaseModel):
    """Base for entity forms: only declared fields are bound and sent."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: IdField = None

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, v: Any, info: ValidationInfo) -> Any:
        # The API sends null for unset columns
        if v is not None or info.field_name is None:
            return v
        field = cls.model_fields[info.field_name]
        if field.is_required():
            return v
        return field.get_default(call_default_factory=True)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


def error_detail(prefix: str, exc: ApiError) -> str:
    return f"{prefix} {exc.message}".strip() if prefix else exc.message


def load_concurrently(gateway: ApiGateway, requests: Mapping[str, Tuple[str, Optional[Dict[str, Any]]]]) -> Dict[str, Any]:
    """
    Issue independent GETs in parallel and join them.

    `requests` maps a name to `(path, params)`. All requests complete before
    returning; if any failed, the first failure (in mapping order) is raised.
    """
    if not requests:
        return {}
    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        futures = {name: pool.submit(gateway.get, path, params=params) for name, (path, params) in requests.items()}
    results: Dict[str, Any] = {}
    for name, fut in futures.items():
        results[name] = fut.result()
    return results


def matches(record: Record, text: str, fields: Sequence[str]) -> bool:
    """Case-insensitive "contains" match of `text` against any of `fields`."""
    needle = text.strip().lower()
    if not needle:
        return True
    for path in fields:
        value = get_path(record, path)
        if value is not None and needle in str(value).lower():
            return True
    return False


def as_list(data: Any) -> List[Record]:
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    # Some endpoints wrap lists as {"data": [...]}
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return [r for r in data["data"] if isinstance(r, dict)]
    return []


class Page:
    """A screen: loads on mount, stops applying results after unmount."""

    path: ClassVar[str] = ""
    title: ClassVar[str] = ""

    def __init__(self, gateway: ApiGateway, notifier: Notifier) -> None:
        self.gateway = gateway
        self.notifier = notifier
        self.mounted = False

    def mount(self) -> None:
        self.mounted = True
        self.load()

    def unmount(self) -> None:
        self.mounted = False

    def load(self) -> bool:
        return True

    def render(self) -> str:
        return self.title


class EntityPage(Page):
    """
    List + dialog-form screen for one API resource.

    Subclasses set the class attributes below and, where needed, override
    `validate()` and `edit()`. Error details concatenate the page's prefix
    with the server message verbatim.
    """

    resource: ClassVar[str] = ""
    form_model: ClassVar[Optional[Type[FormModel]]] = None
    companions: ClassVar[Dict[str, str]] = {}
    search_fields: ClassVar[Sequence[str]] = ()
    columns: ClassVar[Sequence[Column]] = ()
    empty_message: ClassVar[str] = "Sin registros."

    msg_load_error: ClassVar[str] = "No se pudieron cargar los datos"
    msg_created: ClassVar[str] = "Registro creado"
    msg_updated: ClassVar[str] = "Registro actualizado"
    msg_save_error: ClassVar[str] = "Error al guardar"
    msg_required: ClassVar[str] = "Campos obligatorios"
    msg_confirm_delete: ClassVar[str] = "¿Estás seguro de eliminar este registro?"
    msg_deleted: ClassVar[str] = "Registro eliminado"
    msg_delete_error: ClassVar[str] = "Error al eliminar"
    msg_bind_error: ClassVar[str] = "El registro tiene datos inválidos"

    def __init__(self, gateway: ApiGateway, notifier: Notifier) -> None:
        super().__init__(gateway, notifier)
        self.rows: List[Record] = []
        self.options: Dict[str, List[Record]] = {}
        self.loading = False
        self.form: Optional[FormModel] = None
        self.dialog_visible = False
        self.search_text = ""

    # --------------- Loading ---------------
    def list_params(self) -> Optional[Dict[str, Any]]:
        return None

    def load(self) -> bool:
        """Fetch the list (plus companion lists, concurrently). Keeps old rows on failure."""
        requests: Dict[str, Tuple[str, Optional[Dict[str, Any]]]] = {"rows": (self.resource, self.list_params())}
        for name, path in self.companions.items():
            requests[name] = (path, None)

        self.loading = True
        try:
            results = load_concurrently(self.gateway, requests)
        except ApiError as exc:
            self.notifier.error(error_detail(self.msg_load_error, exc))
            return False
        finally:
            self.loading = False

        self.rows = as_list(results.pop("rows"))
        for name, data in results.items():
            self.options[name] = as_list(data)
        return True

    # --------------- Form ---------------
    def _require_form_model(self) -> Type[FormModel]:
        if self.form_model is None:
            raise TypeError(f"{type(self).__name__} has no form")
        return self.form_model

    def new(self) -> FormModel:
        self.form = self._require_form_model()()
        self.dialog_visible = True
        return self.form

    def edit(self, record: Record) -> Optional[FormModel]:
        """Open the dialog on `record`; a record the form cannot hold is reported and not opened."""
        try:
            form = self._require_form_model().model_validate(record)
        except ValidationError as ex:
            logger.warning("%s record %s cannot be edited: %s", self.resource, record.get("id"), ex)
            self.notifier.error(self.msg_bind_error)
            return None
        self.form = form
        self.dialog_visible = True
        return self.form

    def update_form(self, **changes: Any) -> FormModel:
        """Bind field values; a value the field cannot hold raises FormValidationError."""
        form = self.form if self.form is not None else self.new()
        for name, value in changes.items():
            if name not in type(form).model_fields:
                raise FormValidationError(f"Campo desconocido: {name}")
            try:
                setattr(form, name, value)
            except ValidationError as ex:
                raise FormValidationError(f"Valor inválido para {name}") from ex
        return form

    def close_dialog(self) -> None:
        self.dialog_visible = False

    def validate(self, form: FormModel) -> None:
        """Raise FormValidationError when `form` must not be sent."""

    def save(self) -> bool:
        if self.form is None:
            raise RuntimeError("No form is open")
        form = self.form
        try:
            self.validate(form)
        except FormValidationError as ve:
            logger.info("%s form rejected: %s", self.resource, ve.message)
            self.notifier.warn(ve.message)
            return False

        try:
            if form.id:
                self.gateway.put(f"{self.resource}/{form.id}", form.payload())
                self.notifier.success(self.msg_updated)
            else:
                self.gateway.post(self.resource, form.payload())
                self.notifier.success(self.msg_created)
        except ApiError as exc:
            self.notifier.error(error_detail(self.msg_save_error, exc))
            return False

        self.dialog_visible = False
        self.load()
        return True

    def delete(self, record_id: Any, confirm: Optional[Confirmer] = None) -> bool:
        if confirm is not None and not confirm(self.msg_confirm_delete):
            return False
        try:
            self.gateway.delete(f"{self.resource}/{coerce_id(record_id)}")
        except ApiError as exc:
            self.notifier.error(error_detail(self.msg_delete_error, exc))
            return False
        self.notifier.success(self.msg_deleted, summary="Eliminado")
        self.load()
        return True

    # --------------- View ---------------
    def search(self, text: str) -> List[Record]:
        self.search_text = text
        return self.visible_rows

    @property
    def visible_rows(self) -> List[Record]:
        return [r for r in self.rows if matches(r, self.search_text, self.search_fields)]

    def table_row(self, record: Record) -> List[Any]:
        return [get_path(record, path) for _, path in self.columns]

    def render(self) -> str:
        rows = [self.table_row(r) for r in self.visible_rows]
        return f"{self.title}\n" + render_table(rows, self.columns, empty_message=self.empty_message)


__all__ = [
    "EntityPage",
    "FormModel",
    "FormValidationError",
    "IdField",
    "Page",
    "Record",
    "as_list",
    "coerce_id",
    "error_detail",
    "load_concurrently",
    "matches",
]

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ..config import settings
from ..errors import NotFound, SecurityViolation
from ..schemas import ApiResponse, PathRequest, QueryOptions, SearchOptions, SortOptions, TransferRequest, UnzipRequest, ZipRequest
from ..services.file_ops import FileOps

router = APIRouter(prefix='/api/files', tags=['files'])
ops = FileOps(settings.sandbox_root)


def _run(action, *args, **kwargs):
    try:
        return action(*args, **kwargs)
    except SecurityViolation as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get('/tree')
def directory_tree(
    path: str = Query(default='.'),
    detail: bool = Query(default=False),
    show_empty_folders: bool = Query(default=False),
    name: Optional[str] = Query(default=None),
    regex: Optional[str] = Query(default=None),
    extension: Optional[list[str]] = Query(default=None),
    content: Optional[str] = Query(default=None),
    content_regex: Optional[str] = Query(default=None),
    sort_by: str = Query(default='name', pattern='^(name|size|date)$'),
    order: str = Query(default='asc', pattern='^(asc|desc)$'),
):
    options = QueryOptions(
        detail=detail,
        show_empty_folders=show_empty_folders,
        search=SearchOptions(name=name, regex=regex, extension=extension, content=content, content_regex=content_regex),
        sort=SortOptions(by=sort_by, order=order),
    )
    tree = _run(ops.tree, path, options)
    if tree is None:
        raise HTTPException(status_code=404, detail='Directory not found')
    return {'ok': True, 'data': tree}


@router.get('/metadata')
def metadata(path: str = Query(...)):
    return {'ok': True, 'data': _run(ops.get_metadata, path)}


@router.get('/size')
def storage_size(path: str = Query(default='.'), unit: str = Query(default='mb', pattern='^(b|kb|mb|gb|tb)$')):
    size = _run(ops.storage_size, path, unit)
    if size is None:
        raise HTTPException(status_code=404, detail='Path not found')
    return {'ok': True, 'data': {'size': size, 'unit': unit}}


@router.post('/mkdir')
def mkdir(payload: PathRequest):
    _run(ops.create_directory, payload.path)
    return ApiResponse(ok=True, message='Folder created')


@router.post('/remove')
def remove(payload: PathRequest):
    if not _run(ops.remove, payload.path):
        raise HTTPException(status_code=400, detail='Some items could not be deleted')
    return ApiResponse(ok=True, message='Deleted')


@router.post('/copy')
def copy(payload: TransferRequest):
    copied = _run(ops.copy, payload.source, payload.destination)
    return ApiResponse(ok=True, message='Copied', data=[ops.resolver.relative(p) for p in copied])


@router.post('/move')
def move(payload: TransferRequest):
    moved = _run(ops.move, payload.source, payload.destination)
    return ApiResponse(ok=True, message='Moved', data=[ops.resolver.relative(p) for p in moved])


@router.post('/zip')
def zip_files(payload: ZipRequest):
    archive_path = _run(ops.zip, payload.source, payload.archive_path)
    return ApiResponse(ok=True, message='Archive created', data=ops.resolver.relative(archive_path))


@router.post('/unzip')
def unzip_files(payload: UnzipRequest):
    destination = _run(ops.unzip, payload.archive_path, payload.destination)
    return ApiResponse(ok=True, message='Archive extracted', data=ops.resolver.relative(destination))

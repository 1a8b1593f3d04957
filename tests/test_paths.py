from __future__ import annotations

import os

import pytest

from fstoolkit.errors import InvalidPath, SecurityViolation
from fstoolkit.services.paths import PathResolver, is_within


@pytest.fixture
def base(tmp_path):
    root = (tmp_path / 'base').resolve()
    root.mkdir()
    return root


def test_relative_path_resolves_under_base(base):
    resolver = PathResolver(str(base))

    assert resolver.resolve('subdir/file.txt') == base / 'subdir' / 'file.txt'


def test_parent_traversal_is_rejected(base):
    resolver = PathResolver(str(base))

    with pytest.raises(SecurityViolation):
        resolver.resolve('../../etc/passwd')


def test_absolute_path_outside_base_is_rejected(base):
    resolver = PathResolver(str(base))

    with pytest.raises(SecurityViolation):
        resolver.resolve('/etc/passwd')


def test_absolute_path_inside_base_is_accepted(base):
    resolver = PathResolver(str(base))

    assert resolver.resolve(str(base / 'a' / 'b.txt')) == base / 'a' / 'b.txt'


def test_sibling_with_common_prefix_is_rejected(base):
    sibling = base.parent / (base.name + '2')
    sibling.mkdir()
    resolver = PathResolver(str(base))

    with pytest.raises(SecurityViolation):
        resolver.resolve(str(sibling / 'x.txt'))
    with pytest.raises(SecurityViolation):
        resolver.resolve(f'../{sibling.name}/x.txt')


def test_symlink_escape_is_rejected(base, tmp_path):
    outside = tmp_path / 'outside'
    outside.mkdir()
    os.symlink(outside, base / 'link')
    resolver = PathResolver(str(base))

    with pytest.raises(SecurityViolation):
        resolver.resolve('link/secret.txt')


def test_dot_resolves_to_base(base):
    assert PathResolver(str(base)).resolve('.') == base


@pytest.mark.parametrize('value', ['', '   ', None])
def test_blank_input_is_invalid(base, value):
    with pytest.raises(InvalidPath):
        PathResolver(str(base)).resolve(value)


def test_unsandboxed_resolver_returns_canonical_path(tmp_path):
    resolver = PathResolver()
    target = tmp_path / 'a' / '..' / 'b.txt'

    assert not resolver.config.is_sandboxed
    assert resolver.resolve(str(target)) == (tmp_path / 'b.txt').resolve()


def test_trusted_root_bypasses_base_but_stays_confined(base, tmp_path):
    external = (tmp_path / 'sdcard').resolve()
    external.mkdir()
    resolver = PathResolver(str(base), trusted_roots=[str(external)])

    assert resolver.resolve(f'{external}/Download/a.txt') == external / 'Download' / 'a.txt'
    with pytest.raises(SecurityViolation):
        resolver.resolve(f'{external}/../escape.txt')


def test_relative_renders_paths_against_base(base):
    resolver = PathResolver(str(base))

    assert resolver.relative(base / 'a' / 'b.txt') == 'a/b.txt'
    assert resolver.relative(base) == ''


def test_is_within_respects_separator_boundary(tmp_path):
    root = tmp_path / 'sandbox'

    assert is_within(root / 'x', root)
    assert is_within(root, root)
    assert not is_within(root, root, allow_equal=False)
    assert not is_within(tmp_path / 'sandboxXYZ', root)


def test_boundary_for_picks_the_confining_root(base, tmp_path):
    external = (tmp_path / 'card').resolve()
    external.mkdir()
    resolver = PathResolver(str(base), trusted_roots=[str(external)])

    assert resolver.boundary_for(resolver.resolve('docs')) == base
    assert resolver.boundary_for(resolver.resolve(str(external / 'photos'))) == external
    assert PathResolver().boundary_for(tmp_path) is None

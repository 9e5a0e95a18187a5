"""Tests for lifecycle_metadata.markers module."""

from dataclasses import FrozenInstanceError
from typing import Annotated, ClassVar

import pytest

from lifecycle_metadata import (
    Configuration,
    MarkerError,
    MarkerKind,
    MarkerTarget,
    NotNone,
    PostConstruct,
    Range,
    Resource,
    configuration,
    configuration_variable,
    post_construct,
    pre_destroy,
    resource,
    resources,
    warm_up,
)
from lifecycle_metadata.markers import (
    CLASS_MARKERS,
    FIELD_MARKERS,
    METHOD_MARKERS,
    bare_type,
    class_markers,
    field_markers,
    has_constraint,
    is_class_var,
    method_markers,
)


class TestMarkerKind:
    """Test marker kind applicability."""

    def test_method_kinds(self):
        """Test the method marker kinds."""
        assert set(METHOD_MARKERS) == {
            MarkerKind.PRE_CONFIGURATION,
            MarkerKind.POST_CONSTRUCT,
            MarkerKind.PRE_DESTROY,
            MarkerKind.RESOURCE,
            MarkerKind.RESOURCES,
            MarkerKind.WARM_UP,
        }
        for kind in METHOD_MARKERS:
            assert kind.applies_to(MarkerTarget.METHOD)

    def test_field_kinds(self):
        """Test the field marker kinds."""
        assert set(FIELD_MARKERS) == {
            MarkerKind.CONFIGURATION,
            MarkerKind.CONFIGURATION_VARIABLE,
            MarkerKind.RESOURCE,
            MarkerKind.RESOURCES,
        }
        for kind in FIELD_MARKERS:
            assert kind.applies_to(MarkerTarget.FIELD)

    def test_class_kinds(self):
        """Test the class marker kinds."""
        assert set(CLASS_MARKERS) == {MarkerKind.RESOURCE, MarkerKind.RESOURCES}
        assert not MarkerKind.POST_CONSTRUCT.applies_to(MarkerTarget.CLASS)
        assert not MarkerKind.CONFIGURATION.applies_to(MarkerTarget.METHOD)

    def test_is_resource(self):
        """Test the resource kind check."""
        assert MarkerKind.RESOURCE.is_resource
        assert MarkerKind.RESOURCES.is_resource
        assert not MarkerKind.WARM_UP.is_resource


class TestMethodDecorators:
    """Test attaching markers to methods."""

    def test_bare_decorator(self):
        """Test a bare marker decorator."""
        class Service:
            @post_construct
            def start(self):
                pass

        assert method_markers(Service.__dict__['start']) == (PostConstruct(),)

    def test_stacked_decorators(self):
        """Test stacking several marker decorators."""
        class Service:
            @pre_destroy
            @warm_up
            def cycle(self):
                pass

        kinds = {m.kind for m in method_markers(Service.__dict__['cycle'])}
        assert kinds == {MarkerKind.PRE_DESTROY, MarkerKind.WARM_UP}

    def test_static_and_class_methods(self):
        """Markers work above or below staticmethod/classmethod."""

        class Service:
            @post_construct
            @staticmethod
            def outer():
                pass

            @classmethod
            @post_construct
            def inner(cls):
                pass

        assert method_markers(Service.__dict__['outer']) == (PostConstruct(),)
        assert method_markers(Service.__dict__['inner']) == (PostConstruct(),)

    def test_resource_on_method(self):
        """Test a resource marker on a method."""
        class Service:
            @resource(name="db")
            def set_db(self, db):
                pass

        (marker,) = method_markers(Service.__dict__['set_db'])
        assert marker == Resource(name="db")

    def test_field_only_marker_rejected_on_method(self):
        """Test that a field-only marker is rejected on a method."""
        with pytest.raises(MarkerError, match="Configuration cannot be applied to method"):

            @configuration("app.name")
            def setter(self):
                pass

    def test_non_callable_rejected(self):
        """Test that non-callables are rejected."""
        with pytest.raises(MarkerError, match="can only decorate"):
            post_construct(42)

    def test_unmarked_function(self):
        """Test a function without markers."""
        def plain():
            pass

        assert method_markers(plain) == ()


class TestClassDecorators:
    """Test class-level markers."""

    def test_resource_on_class(self):
        """Test a resource marker on a class."""
        @resource(name="cache")
        class Service:
            pass

        assert class_markers(Service) == (Resource(name="cache"),)

    def test_class_markers_not_inherited(self):
        """Test that class markers are not inherited."""
        @resources(resource(name="a"), resource(name="b"))
        class Base:
            pass

        class Derived(Base):
            pass

        assert len(class_markers(Base)) == 1
        assert class_markers(Derived) == ()

    def test_lifecycle_marker_rejected_on_class(self):
        """Test that a lifecycle marker is rejected on a class."""
        with pytest.raises(MarkerError, match="cannot be applied to class"):

            @post_construct
            class Service:
                pass


class TestFieldAnnotations:
    """Test reading markers out of annotations."""

    def test_annotated_markers(self):
        """Test reading markers from Annotated metadata."""
        hint = Annotated[str, configuration("app.name"), NotNone()]
        assert field_markers(hint) == (Configuration(value="app.name"),)
        assert has_constraint(hint)
        assert bare_type(hint) is str
        assert not is_class_var(hint)

    def test_class_var(self):
        """Test ClassVar detection."""
        hint = ClassVar[Annotated[int, configuration_variable("region")]]
        assert is_class_var(hint)
        (marker,) = field_markers(hint)
        assert marker.kind is MarkerKind.CONFIGURATION_VARIABLE
        assert marker.name == "region"

    def test_method_markers_ignored_on_fields(self):
        """Test that method-only markers are ignored on fields."""
        assert field_markers(Annotated[int, post_construct]) == ()

    def test_plain_annotation(self):
        """Test an annotation without metadata."""
        assert field_markers(int) == ()
        assert not has_constraint(int)

    def test_range_constraint(self):
        """Test the Range constraint."""
        hint = Annotated[int, Range(min=0, max=10)]
        assert has_constraint(hint)
        assert field_markers(hint) == ()


class TestMarkerValues:
    """Test marker value objects."""

    def test_markers_are_frozen(self):
        """Test that markers are immutable."""
        marker = resource(name="db")
        with pytest.raises(FrozenInstanceError):
            marker.name = "other"

    def test_resources_groups_values(self):
        """Test grouping resources."""
        group = resources(resource(name="a"), resource(name="b"))
        assert [r.name for r in group.values] == ["a", "b"]
        assert group.kind is MarkerKind.RESOURCES

    def test_configuration_defaults(self):
        """Test configuration marker defaults."""
        marker = configuration("key")
        assert marker.documentation == ""
        assert marker.ignore_type_mismatch is False

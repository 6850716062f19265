"""
Unit Tests for the Task Planner.

Covers the hierarchy builder (orphans, self references, parent cycles),
the priority scorer (formula, day boundaries, validation), top-K
selection (size, ordering, ties, depth independence), the display
helpers and the REST endpoints. Every test pins "now" explicitly.
"""

from datetime import date, datetime, timedelta, timezone as dt_timezone
import json
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from .display import (
    due_label,
    due_soon_counts,
    format_priority_score,
    group_by_due_date,
    priority_class,
)
from . import selection
from .errors import ErrorCode, InvalidDueDate, InvalidTaskField, InvalidTopKCount, InvalidWeight
from .hierarchy import (
    build_hierarchy,
    children_of,
    collect_descendant_ids,
    flatten_forest,
    root_tasks,
)
from .records import Task, scored_task_to_dict, task_from_dict
from .scoring import calculate_priority_score, days_until_due, score_tree
from .selection import top_k, urgent_tasks


NOW = datetime(2025, 6, 2, 9, 0, tzinfo=dt_timezone.utc)
TODAY = NOW.date()


def make_task(task_id, weight=3, days=0, parent_id=None, completed=False):
    """Build a task due ``days`` calendar days from TODAY."""
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        due_date=TODAY + timedelta(days=days),
        weight=weight,
        parent_id=parent_id,
        completed=completed,
    )


def ids(nodes):
    return [node.id for node in nodes]


class HierarchyBuilderTests(TestCase):
    """Tests for building a forest from flat task records."""

    def test_empty_input_returns_empty_forest(self):
        self.assertEqual(build_hierarchy([]), [])

    def test_children_nested_under_parent_in_input_order(self):
        tasks = [
            make_task('a'),
            make_task('b', parent_id='a'),
            make_task('c'),
            make_task('d', parent_id='a'),
            make_task('e', parent_id='b'),
        ]
        forest = build_hierarchy(tasks)

        self.assertEqual(ids(forest), ['a', 'c'])
        self.assertEqual(ids(forest[0].children), ['b', 'd'])
        self.assertEqual(ids(forest[0].children[0].children), ['e'])
        self.assertEqual(forest[1].children, ())

    def test_child_listed_before_parent(self):
        """Input order of parent and child must not matter for nesting."""
        forest = build_hierarchy([make_task('b', parent_id='a'), make_task('a')])

        self.assertEqual(ids(forest), ['a'])
        self.assertEqual(ids(forest[0].children), ['b'])

    def test_every_task_appears_exactly_once(self):
        tasks = [
            make_task('root'),
            make_task('child', parent_id='root'),
            make_task('orphan', parent_id='missing'),
            make_task('self', parent_id='self'),
            make_task('x', parent_id='y'),
            make_task('y', parent_id='x'),
            make_task('grandchild', parent_id='child'),
        ]
        flat_ids = ids(flatten_forest(build_hierarchy(tasks)))

        self.assertEqual(len(flat_ids), len(tasks))
        self.assertEqual(set(flat_ids), {task.id for task in tasks})

    def test_orphan_becomes_root(self):
        forest = build_hierarchy([make_task('a'), make_task('b', parent_id='ghost')])
        self.assertEqual(ids(forest), ['a', 'b'])

    def test_self_reference_becomes_root(self):
        forest = build_hierarchy([make_task('a', parent_id='a')])

        self.assertEqual(ids(forest), ['a'])
        self.assertEqual(forest[0].children, ())

    def test_two_task_cycle_is_broken_at_first_input(self):
        """A -> B -> A: the earlier task in the input becomes the root."""
        with self.assertLogs('tasks.hierarchy', level='WARNING'):
            forest = build_hierarchy([
                make_task('a', parent_id='b'),
                make_task('b', parent_id='a'),
            ])

        self.assertEqual(ids(forest), ['a'])
        self.assertEqual(ids(forest[0].children), ['b'])
        self.assertEqual(forest[0].children[0].children, ())

    def test_cycle_reached_through_a_tail(self):
        tasks = [
            make_task('tail', parent_id='c2'),
            make_task('c1', parent_id='c3'),
            make_task('c2', parent_id='c1'),
            make_task('c3', parent_id='c2'),
        ]
        forest = build_hierarchy(tasks)
        flat_ids = ids(flatten_forest(forest))

        self.assertEqual(ids(forest), ['c1'])
        self.assertEqual(sorted(flat_ids), sorted(task.id for task in tasks))

    def test_duplicate_ids_keep_first_occurrence(self):
        first = make_task('a', weight=5)
        duplicate = make_task('a', weight=1)

        with self.assertLogs('tasks.hierarchy', level='WARNING'):
            forest = build_hierarchy([first, duplicate])

        self.assertEqual(len(forest), 1)
        self.assertIs(forest[0].task, first)

    def test_input_records_are_not_modified(self):
        tasks = [make_task('a'), make_task('b', parent_id='a')]
        snapshot = list(tasks)

        build_hierarchy(tasks)

        self.assertEqual(tasks, snapshot)
        self.assertEqual(tasks[1].parent_id, 'a')

    def test_flatten_is_pre_order(self):
        tasks = [
            make_task('a'),
            make_task('a1', parent_id='a'),
            make_task('a1x', parent_id='a1'),
            make_task('a2', parent_id='a'),
            make_task('b'),
        ]
        flat = flatten_forest(build_hierarchy(tasks))
        self.assertEqual(ids(flat), ['a', 'a1', 'a1x', 'a2', 'b'])

    def test_root_tasks_excludes_orphans(self):
        forest = build_hierarchy([make_task('a'), make_task('b', parent_id='ghost')])
        self.assertEqual(ids(root_tasks(forest)), ['a'])

    def test_children_of(self):
        forest = build_hierarchy([
            make_task('a'),
            make_task('b', parent_id='a'),
            make_task('c', parent_id='b'),
        ])

        self.assertEqual(ids(children_of(forest, 'b')), ['c'])
        self.assertEqual(children_of(forest, 'unknown'), [])


class DescendantTests(TestCase):
    """Tests for collecting the subtasks removed with a parent."""

    def test_collects_all_levels(self):
        tasks = [
            make_task('a'),
            make_task('b', parent_id='a'),
            make_task('c', parent_id='b'),
            make_task('d', parent_id='a'),
            make_task('e'),
        ]
        self.assertEqual(sorted(collect_descendant_ids(tasks, 'a')), ['b', 'c', 'd'])

    def test_leaf_has_no_descendants(self):
        self.assertEqual(collect_descendant_ids([make_task('a')], 'a'), [])

    def test_terminates_on_cycles(self):
        tasks = [make_task('a', parent_id='b'), make_task('b', parent_id='a')]
        self.assertEqual(collect_descendant_ids(tasks, 'a'), ['b'])


class DeepChainTests(TestCase):
    """Tests for long parent chains, deeper than the interpreter's recursion limit."""

    DEPTH = 3000

    def chain(self):
        tasks = [make_task('t0', weight=1, days=10)]
        tasks += [
            make_task(f't{i}', weight=1, days=10, parent_id=f't{i - 1}')
            for i in range(1, self.DEPTH)
        ]
        # the deepest task is the most urgent one
        tasks[-1] = make_task(f't{self.DEPTH - 1}', weight=5, days=0, parent_id=f't{self.DEPTH - 2}')
        return tasks

    def test_build_hierarchy_nests_the_whole_chain(self):
        forest = build_hierarchy(self.chain())

        self.assertEqual(ids(forest), ['t0'])
        depth, node = 1, forest[0]
        while node.children:
            self.assertEqual(len(node.children), 1)
            node = node.children[0]
            depth += 1
        self.assertEqual(depth, self.DEPTH)
        self.assertEqual(node.id, f't{self.DEPTH - 1}')

    def test_score_tree_and_top_k_reach_the_deepest_task(self):
        scored = score_tree(build_hierarchy(self.chain()), NOW)

        flat = flatten_forest(scored)
        self.assertEqual(len(flat), self.DEPTH)
        self.assertEqual(flat[-1].priority_score, 5.0)
        self.assertEqual(ids(top_k(scored, 1)), [f't{self.DEPTH - 1}'])

    def test_scored_task_to_dict_nests_the_whole_chain(self):
        scored = score_tree(build_hierarchy(self.chain()), NOW)
        data = scored_task_to_dict(scored[0])

        depth = 1
        while data['children']:
            data = data['children'][0]
            depth += 1
        self.assertEqual(depth, self.DEPTH)
        self.assertEqual(data['priority_score'], 5.0)

    def test_collect_descendants_of_a_long_chain(self):
        found = collect_descendant_ids(self.chain(), 't0')
        self.assertEqual(found, [f't{i}' for i in range(1, self.DEPTH)])

    def test_descendants_are_collected_breadth_first(self):
        tasks = [
            make_task('a'),
            make_task('b', parent_id='a'),
            make_task('c', parent_id='a'),
            make_task('b1', parent_id='b'),
            make_task('c1', parent_id='c'),
        ]
        self.assertEqual(collect_descendant_ids(tasks, 'a'), ['b', 'c', 'b1', 'c1'])


class DaysUntilDueTests(TestCase):
    """Tests for the calendar-day difference."""

    def test_later_same_day_is_zero(self):
        due = datetime(2025, 6, 2, 23, 59, tzinfo=dt_timezone.utc)
        self.assertEqual(days_until_due(due, NOW), 0)

    def test_earlier_same_day_is_zero(self):
        due = datetime(2025, 6, 2, 0, 1, tzinfo=dt_timezone.utc)
        self.assertEqual(days_until_due(due, NOW), 0)

    def test_plain_dates(self):
        self.assertEqual(days_until_due(date(2025, 6, 9), NOW), 7)
        self.assertEqual(days_until_due(date(2025, 5, 30), NOW), -3)

    def test_aware_due_date_converted_to_now_timezone(self):
        """23:30 at UTC-5 on June 2nd is already June 3rd in UTC."""
        due = datetime(2025, 6, 2, 23, 30, tzinfo=dt_timezone(timedelta(hours=-5)))
        self.assertEqual(days_until_due(due, NOW), 1)


class PriorityScoreTests(TestCase):
    """Tests for the urgency formula."""

    def score(self, weight, days):
        return calculate_priority_score(weight, TODAY + timedelta(days=days), NOW)

    def test_due_today_scores_weight(self):
        self.assertEqual(self.score(5, 0), 5.0)

    def test_one_day_overdue_uses_overdue_formula(self):
        self.assertAlmostEqual(self.score(5, -1), 5 / 1.5)
        self.assertNotAlmostEqual(self.score(5, -1), 5 / 2)

    def test_due_in_six_days(self):
        self.assertAlmostEqual(self.score(5, 6), 5 / 7)

    def test_pending_score_strictly_decreases(self):
        scores = [self.score(3, days) for days in range(0, 15)]
        for earlier, later in zip(scores, scores[1:]):
            self.assertGreater(earlier, later)

    def test_overdue_score_strictly_decreases_with_days_overdue(self):
        scores = [self.score(3, -days) for days in range(1, 15)]
        for earlier, later in zip(scores, scores[1:]):
            self.assertGreater(earlier, later)

    def test_score_always_positive(self):
        for weight in range(1, 6):
            for days in (-400, -1, 0, 1, 400):
                self.assertGreater(self.score(weight, days), 0)

    def test_time_of_day_does_not_matter(self):
        morning = datetime(2025, 6, 4, 0, 5, tzinfo=dt_timezone.utc)
        evening = datetime(2025, 6, 4, 23, 55, tzinfo=dt_timezone.utc)
        self.assertEqual(
            calculate_priority_score(4, morning, NOW),
            calculate_priority_score(4, evening, NOW)
        )

    def test_iso_string_due_date(self):
        self.assertEqual(calculate_priority_score(2, '2025-06-02', NOW), 2.0)
        self.assertAlmostEqual(calculate_priority_score(2, '2025-06-03T18:00:00Z', NOW), 1.0)

    def test_invalid_weights_rejected(self):
        for weight in (0, 6, -1, 2.5, True, None, '3'):
            with self.subTest(weight=weight):
                with self.assertRaises(InvalidWeight):
                    calculate_priority_score(weight, TODAY, NOW)

    def test_invalid_due_dates_rejected(self):
        for due in (None, '', 'not-a-date', '2025-02-30', 12345):
            with self.subTest(due=due):
                with self.assertRaises(InvalidDueDate):
                    calculate_priority_score(3, due, NOW)

    def test_error_reports_task_id(self):
        with self.assertRaises(InvalidWeight) as ctx:
            calculate_priority_score(9, TODAY, NOW, task_id='t-9')

        self.assertEqual(ctx.exception.to_dict(), {
            'error_code': ErrorCode.ERR_INVALID_WEIGHT.value,
            'message': ctx.exception.message,
            'field': 'weight',
            'task_id': 't-9'
        })


class ScoreTreeTests(TestCase):
    """Tests for scoring a whole forest."""

    def test_every_depth_is_scored_independently(self):
        tasks = [
            make_task('parent', weight=1, days=10),
            make_task('child', weight=5, days=0, parent_id='parent'),
            make_task('grandchild', weight=3, days=-3, parent_id='child'),
        ]
        forest = score_tree(build_hierarchy(tasks), NOW)

        parent = forest[0]
        child = parent.children[0]
        grandchild = child.children[0]
        self.assertAlmostEqual(parent.priority_score, 1 / 11)
        self.assertEqual(child.priority_score, 5.0)
        self.assertAlmostEqual(grandchild.priority_score, 3 / 3.5)

    def test_shape_is_preserved(self):
        tasks = [make_task('a'), make_task('b', parent_id='a'), make_task('c')]
        forest = build_hierarchy(tasks)
        scored = score_tree(forest, NOW)

        self.assertEqual(ids(flatten_forest(scored)), ids(flatten_forest(forest)))

    def test_invalid_nested_weight_fails_fast(self):
        tasks = [make_task('a'), make_task('b', weight=7, parent_id='a')]

        with self.assertRaises(InvalidWeight) as ctx:
            score_tree(build_hierarchy(tasks), NOW)
        self.assertEqual(ctx.exception.task_id, 'b')


class TopKTests(TestCase):
    """Tests for top-K selection across the forest."""

    def scored(self, tasks):
        return score_tree(build_hierarchy(tasks), NOW)

    def test_end_to_end_ranking(self):
        forest = self.scored([
            make_task('A', weight=5, days=0),
            make_task('B', weight=1, days=10),
            make_task('C', weight=3, days=-3),
        ])
        self.assertEqual(ids(top_k(forest, 2)), ['A', 'C'])

    def test_size_bound(self):
        forest = self.scored([make_task(str(i), days=i) for i in range(3)])

        self.assertEqual(len(top_k(forest, 5)), 3)
        self.assertEqual(len(top_k(forest, 2)), 2)
        self.assertEqual(len(top_k(forest, 1)), 1)

    def test_sorted_descending(self):
        forest = self.scored([
            make_task('a', weight=2, days=4),
            make_task('b', weight=5, days=-2, parent_id='a'),
            make_task('c', weight=1, days=0),
            make_task('d', weight=4, days=1, parent_id='b'),
            make_task('e', weight=3, days=30),
        ])
        result = top_k(forest, 10)

        for current, following in zip(result, result[1:]):
            self.assertGreaterEqual(current.priority_score, following.priority_score)

    def test_nested_task_outranks_shallow_root(self):
        forest = self.scored([
            make_task('root', weight=1, days=20),
            make_task('mid', weight=1, days=20, parent_id='root'),
            make_task('deep', weight=5, days=0, parent_id='mid'),
            make_task('other_root', weight=2, days=3),
        ])
        self.assertEqual(ids(top_k(forest, 2)), ['deep', 'other_root'])

    def test_ties_keep_pre_order(self):
        forest = self.scored([
            make_task('a'),
            make_task('a1', parent_id='a'),
            make_task('b'),
            make_task('a2', parent_id='a'),
        ])
        self.assertEqual(ids(top_k(forest, 4)), ['a', 'a1', 'a2', 'b'])

    def test_empty_forest(self):
        self.assertEqual(top_k([], 5), [])

    def test_invalid_counts_rejected(self):
        forest = self.scored([make_task('a')])
        for k in (0, -1, 1.5, True, None, '3'):
            with self.subTest(k=k):
                with self.assertRaises(InvalidTopKCount):
                    top_k(forest, k)

    def test_top_k_keeps_completed_tasks(self):
        forest = self.scored([make_task('done', weight=5, completed=True)])
        self.assertEqual(ids(top_k(forest, 5)), ['done'])

    def test_urgent_tasks_excludes_completed(self):
        forest = self.scored([
            make_task('done', weight=5, days=0, completed=True),
            make_task('open_child', weight=4, days=0, parent_id='done'),
            make_task('later', weight=1, days=5),
        ])
        self.assertEqual(ids(urgent_tasks(forest)), ['open_child', 'later'])

    def test_urgent_tasks_defaults_to_five(self):
        forest = self.scored([make_task(str(i), days=i) for i in range(8)])
        self.assertEqual(len(urgent_tasks(forest)), 5)

    def test_urgent_tasks_rejects_invalid_count(self):
        with self.assertRaises(InvalidTopKCount):
            urgent_tasks([], 0)

    def test_count_is_validated_once_per_call(self):
        forest = self.scored([make_task('a'), make_task('b', parent_id='a')])
        for select in (top_k, urgent_tasks):
            with self.subTest(select=select.__name__):
                with mock.patch.object(selection, 'validate_count',
                                       wraps=selection.validate_count) as check:
                    select(forest, 2)
                self.assertEqual(check.call_count, 1)


class RecordTests(TestCase):
    """Tests for building and serializing records."""

    def test_task_from_camel_case_dict(self):
        task = task_from_dict({
            'id': 7,
            'parentId': 3,
            'title': 'Write copy',
            'dueDate': '2025-06-03T10:00:00Z',
            'weight': 4,
            'completed': True,
            'createdAt': '2025-05-01T08:00:00Z',
        })

        self.assertEqual(task.id, '7')
        self.assertEqual(task.parent_id, '3')
        self.assertEqual(task.due_date, datetime(2025, 6, 3, 10, 0, tzinfo=dt_timezone.utc))
        self.assertTrue(task.completed)
        self.assertEqual(task.created_at, datetime(2025, 5, 1, 8, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(task.description, '')

    def test_date_only_string_stays_a_date(self):
        task = task_from_dict({'id': 'a', 'title': 'A', 'due_date': '2025-06-03', 'weight': 1})
        self.assertEqual(task.due_date, date(2025, 6, 3))

    def test_bad_due_date_reports_task(self):
        with self.assertRaises(InvalidDueDate) as ctx:
            task_from_dict({'id': 'bad', 'title': 'Bad', 'dueDate': 'tomorrow', 'weight': 1})
        self.assertEqual(ctx.exception.task_id, 'bad')

    def test_completed_must_be_a_boolean(self):
        for value in ('false', 'true', 0, 1, None):
            with self.subTest(completed=value):
                with self.assertRaises(InvalidTaskField) as ctx:
                    task_from_dict({'id': 'a', 'title': 'A', 'due_date': '2025-06-03',
                                    'weight': 1, 'completed': value})
                self.assertEqual(ctx.exception.field, 'completed')
                self.assertEqual(ctx.exception.code, ErrorCode.ERR_INVALID_FIELD)

    def test_completed_defaults_to_false(self):
        task = task_from_dict({'id': 'a', 'title': 'A', 'due_date': '2025-06-03', 'weight': 1})
        self.assertFalse(task.completed)

    def test_scored_task_to_dict_nests_children(self):
        forest = score_tree(build_hierarchy([
            make_task('a', weight=5),
            make_task('b', weight=2, parent_id='a'),
        ]), NOW)
        data = scored_task_to_dict(forest[0])

        self.assertEqual(data['id'], 'a')
        self.assertEqual(data['priority_score'], 5.0)
        self.assertEqual(data['due_date'], '2025-06-02')
        self.assertEqual([child['id'] for child in data['children']], ['b'])
        self.assertNotIn('children', scored_task_to_dict(forest[0], include_children=False))


class DisplayTests(TestCase):
    """Tests for presentation helpers."""

    def test_format_priority_score(self):
        self.assertEqual(format_priority_score(5 / 1.5), '3.33')
        self.assertEqual(format_priority_score(5), '5.00')

    def test_priority_class(self):
        self.assertEqual(priority_class(4), 'priority-4')

    def test_due_labels(self):
        self.assertEqual(due_label(TODAY, NOW), 'Due today')
        self.assertEqual(due_label(TODAY + timedelta(days=1), NOW), 'Due tomorrow')
        self.assertEqual(due_label(TODAY + timedelta(days=4), NOW), 'Due in 4 days')
        self.assertEqual(due_label(TODAY - timedelta(days=1), NOW), 'Overdue by 1 day')
        self.assertEqual(due_label(TODAY - timedelta(days=3), NOW), 'Overdue by 3 days')

    def test_group_by_due_date(self):
        tasks = [
            make_task('late', days=2),
            make_task('soon', days=0),
            make_task('done', days=0, completed=True),
            make_task('also_soon', days=0),
        ]
        grouped = group_by_due_date(tasks, NOW)

        self.assertEqual(list(grouped), [TODAY, TODAY + timedelta(days=2)])
        self.assertEqual(ids(grouped[TODAY]), ['soon', 'also_soon'])

        with_completed = group_by_due_date(tasks, NOW, include_completed=True)
        self.assertEqual(ids(with_completed[TODAY]), ['soon', 'done', 'also_soon'])

    def test_due_soon_counts(self):
        tasks = [
            make_task('overdue', days=-2),
            make_task('today', days=0),
            make_task('today_done', days=0, completed=True),
            make_task('tomorrow', days=1),
            make_task('next_week', days=7),
        ]
        self.assertEqual(due_soon_counts(tasks, NOW), {
            'overdue': 1,
            'due_today': 1,
            'due_tomorrow': 1
        })


class APIEndpointTests(APITestCase):
    """Tests for the API endpoints."""

    def setUp(self):
        cache.clear()
        self.now = '2025-06-02T09:00:00Z'
        self.tasks = [
            {'id': 'A', 'title': 'Ship release', 'dueDate': '2025-06-02', 'weight': 5},
            {'id': 'B', 'title': 'Plan offsite', 'dueDate': '2025-06-12', 'weight': 1},
            {'id': 'C', 'title': 'File report', 'dueDate': '2025-05-30', 'weight': 3},
            {'id': 'C1', 'parentId': 'C', 'title': 'Collect numbers',
             'dueDate': '2025-06-02T17:00:00Z', 'weight': 4},
        ]

    def post(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_hierarchy_endpoint_success(self):
        response = self.post('/api/tasks/hierarchy/', {'tasks': self.tasks, 'now': self.now})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['count'], 4)
        self.assertEqual(response.data['root_count'], 3)
        roots = response.data['tasks']
        self.assertEqual([t['id'] for t in roots], ['A', 'B', 'C'])
        self.assertEqual(roots[0]['priority_score'], 5.0)
        self.assertEqual(roots[0]['formatted_score'], '5.00')
        self.assertEqual(roots[2]['due_label'], 'Overdue by 3 days')
        self.assertEqual([t['id'] for t in roots[2]['children']], ['C1'])
        self.assertEqual(roots[2]['children'][0]['priority_score'], 4.0)

    def test_top_endpoint_ranks_across_depth(self):
        response = self.post('/api/tasks/top/', {'tasks': self.tasks, 'now': self.now, 'count': 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['id'] for t in response.data['tasks']], ['A', 'C1'])
        self.assertEqual(response.data['count'], 2)
        self.assertNotIn('children', response.data['tasks'][0])

    def test_top_endpoint_defaults_to_five_and_skips_completed(self):
        tasks = [
            {'id': str(i), 'title': f'Task {i}', 'dueDate': '2025-06-05', 'weight': 3}
            for i in range(7)
        ]
        tasks.append({'id': 'done', 'title': 'Done', 'dueDate': '2025-06-02',
                      'weight': 5, 'completed': True})

        response = self.post('/api/tasks/top/', {'tasks': tasks, 'now': self.now})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['requested_count'], 5)
        returned = [t['id'] for t in response.data['tasks']]
        self.assertEqual(returned, ['0', '1', '2', '3', '4'])

    def test_top_endpoint_include_completed(self):
        tasks = self.tasks + [{'id': 'done', 'title': 'Done', 'dueDate': '2025-05-20',
                               'weight': 5, 'completed': True}]
        response = self.post('/api/tasks/top/', {
            'tasks': tasks, 'now': self.now, 'count': 10, 'include_completed': True
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 5)
        self.assertIn('done', [t['id'] for t in response.data['tasks']])

    def test_top_endpoint_rejects_zero_count(self):
        response = self.post('/api/tasks/top/', {'tasks': self.tasks, 'count': 0})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('count', response.data['errors'])
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_TOP_K_COUNT.value)

    def test_empty_task_list_rejected(self):
        response = self.post('/api/tasks/hierarchy/', {'tasks': []})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_EMPTY_TASKS.value)

    def test_invalid_weight_rejected(self):
        tasks = [{'id': 'x', 'title': 'Too heavy', 'dueDate': '2025-06-02', 'weight': 9}]
        response = self.post('/api/tasks/hierarchy/', {'tasks': tasks})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_WEIGHT.value)

    def test_non_integer_weights_rejected(self):
        for weight in (3.0, 2.5, '3', True):
            with self.subTest(weight=weight):
                cache.clear()
                tasks = [{'id': 'x', 'title': 'Fuzzy', 'dueDate': '2025-06-02', 'weight': weight}]
                response = self.post('/api/tasks/top/', {'tasks': tasks, 'now': self.now})

                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_WEIGHT.value)

    def test_missing_weight_is_a_missing_field(self):
        tasks = [{'id': 'x', 'title': 'No weight', 'dueDate': '2025-06-02'}]
        response = self.post('/api/tasks/hierarchy/', {'tasks': tasks})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_MISSING_FIELD.value)

    def test_invalid_due_date_rejected(self):
        tasks = [{'id': 'x', 'title': 'When?', 'dueDate': 'someday', 'weight': 2}]
        response = self.post('/api/tasks/top/', {'tasks': tasks})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_DUE_DATE.value)

    def test_error_code_names_the_rejected_field_of_a_later_task(self):
        tasks = self.tasks + [{'id': 'y', 'title': 'Bad', 'dueDate': '2025-06-02', 'weight': 0}]
        response = self.post('/api/tasks/summary/', {'tasks': tasks})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_WEIGHT.value)
        self.assertIn('weight', response.data['errors']['tasks'][4])

    def test_top_endpoint_handles_a_long_parent_chain(self):
        depth = 1500
        tasks = [{'id': 't0', 'title': 'Step 0', 'dueDate': '2025-06-12', 'weight': 1}]
        tasks += [
            {'id': f't{i}', 'parentId': f't{i - 1}', 'title': f'Step {i}',
             'dueDate': '2025-06-12', 'weight': 1}
            for i in range(1, depth)
        ]
        tasks[-1]['weight'] = 5
        tasks[-1]['dueDate'] = '2025-06-02'

        response = self.post('/api/tasks/top/', {'tasks': tasks, 'now': self.now, 'count': 1})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['id'] for t in response.data['tasks']], [f't{depth - 1}'])
        self.assertEqual(response.data['tasks'][0]['priority_score'], 5.0)

    def test_blank_title_rejected(self):
        tasks = [{'id': 'x', 'title': '   ', 'dueDate': '2025-06-02', 'weight': 2}]
        response = self.post('/api/tasks/summary/', {'tasks': tasks})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_cycle_still_returns_every_task(self):
        tasks = [
            {'id': 'p', 'parent_id': 'q', 'title': 'P', 'due_date': '2025-06-03', 'weight': 2},
            {'id': 'q', 'parent_id': 'p', 'title': 'Q', 'due_date': '2025-06-04', 'weight': 2},
        ]
        response = self.post('/api/tasks/hierarchy/', {'tasks': tasks, 'now': self.now})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['tasks'][0]['id'], 'p')
        self.assertEqual(response.data['tasks'][0]['children'][0]['id'], 'q')

    def test_calendar_endpoint(self):
        response = self.post('/api/tasks/calendar/', {'tasks': self.tasks, 'now': self.now})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        days = response.data['days']
        self.assertEqual([d['date'] for d in days], ['2025-05-30', '2025-06-02', '2025-06-12'])
        self.assertEqual([t['id'] for t in days[1]['tasks']], ['A', 'C1'])

    def test_summary_endpoint(self):
        tasks = self.tasks + [{'id': 'D', 'title': 'Tomorrow', 'dueDate': '2025-06-03',
                               'weight': 2, 'completed': False},
                              {'id': 'E', 'title': 'Done', 'dueDate': '2025-06-02',
                               'weight': 2, 'completed': True}]
        response = self.post('/api/tasks/summary/', {'tasks': tasks, 'now': self.now})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_tasks'], 6)
        self.assertEqual(summary['completed_count'], 1)
        self.assertEqual(summary['open_count'], 5)
        self.assertEqual(summary['root_count'], 5)
        self.assertEqual(summary['overdue'], 1)
        self.assertEqual(summary['due_today'], 2)
        self.assertEqual(summary['due_tomorrow'], 1)

    def test_now_defaults_to_server_clock(self):
        response = self.post('/api/tasks/hierarchy/', {'tasks': self.tasks})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('now', response.data)

    def test_api_info_endpoint(self):
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('endpoints', response.data)
        self.assertEqual(response.data['defaults']['top_task_count'], 5)
        self.assertIn(ErrorCode.ERR_INVALID_WEIGHT.value, response.data['error_codes'])

    def test_schema_endpoint(self):
        response = self.client.get('/api/schema/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

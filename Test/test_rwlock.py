import threading

import pytest

from rwlock import RWLock


def _in_thread(fn):
    done = threading.Event()

    def run():
        fn()
        done.set()

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t, done


def test_readers_share():
    lock = RWLock()
    entered = threading.Event()

    def reader():
        with lock.read_lock():
            entered.set()

    with lock.read_lock():
        t, done = _in_thread(reader)
        # second reader gets in while the first still holds the lock
        assert entered.wait(5)
        assert done.wait(5)
    t.join(5)


def test_writer_excludes_readers():
    lock = RWLock()
    lock.acquire_read()

    t, done = _in_thread(lock.acquire_write)
    assert not done.wait(0.2)

    lock.release_read()
    assert done.wait(5)
    t.join(5)

    # writer holds it now; a reader must wait
    t2, done2 = _in_thread(lock.acquire_read)
    assert not done2.wait(0.2)
    lock.release_write()
    assert done2.wait(5)
    t2.join(5)
    lock.release_read()


def test_waiting_writer_blocks_new_readers():
    lock = RWLock()
    lock.acquire_read()

    writer_in = threading.Event()

    def writer():
        with lock.write_lock():
            writer_in.set()

    tw = threading.Thread(target=writer, daemon=True)
    tw.start()
    assert not writer_in.wait(0.1)

    t, reader_in = _in_thread(lambda: (lock.acquire_read(), lock.release_read()))
    assert not reader_in.wait(0.2)

    lock.release_read()
    assert writer_in.wait(5)
    assert reader_in.wait(5)
    tw.join(5)
    t.join(5)


def test_unbalanced_release():
    lock = RWLock()
    with pytest.raises(RuntimeError):
        lock.release_read()
    with pytest.raises(RuntimeError):
        lock.release_write()
